"""
Telegram Bot API 客户端

Bot Token 直接拼在 URL 中，无需 token 管理。
私聊和群聊都通过 chat_id 发送。
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from ..delivery import Deadline
from ..errors import DecodeError, PlatformAPIError
from ..types import Message, MessageType, PlatformConfig, SendOptions, Target
from .base import BaseClient

logger = logging.getLogger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org/bot"


@dataclass(frozen=True)
class TelegramConfig(PlatformConfig):
    """
    Telegram 配置

    Attributes:
        bot_token: Bot Token (从 @BotFather 获取)
        base_url: 自定义 API 地址前缀 (代理或测试用)，token 会直接拼在其后
    """
    platform = "telegram"

    bot_token: str = ""
    base_url: str = ""

    def validate(self) -> None:
        self._require("bot_token")


class TelegramClient(BaseClient):
    """Telegram Bot API 客户端"""

    platform_name = "telegram"
    config_class = TelegramConfig
    hosts = ("https://api.telegram.org",)

    def __init__(
        self,
        config: TelegramConfig,
        http_client: Optional[httpx.Client] = None,
        timeout: Optional[float] = None
    ):
        # 无需初始化请求，timeout 仅为保持构造签名一致
        super().__init__(config, http_client)
        self.api_url = f"{config.base_url or TELEGRAM_API_BASE}{config.bot_token}"

    def _send_to_target(
        self,
        message: Message,
        target: Target,
        options: SendOptions,
        deadline: Deadline
    ) -> None:
        payload: Dict[str, Any] = {"chat_id": target.id}

        if message.type == MessageType.IMAGE:
            method = "sendPhoto"
            payload["photo"] = message.content
        else:
            method = "sendMessage"
            payload["text"] = message.content
            if message.type == MessageType.MARKDOWN:
                payload["parse_mode"] = "MarkdownV2"

        payload.update(message.body_fields())
        payload.update(options.extra)

        data = self._request_json(
            "POST",
            f"{self.api_url}/{method}",
            json=payload,
            timeout=deadline.remaining()
        )
        self._check_response(data)
        if not data.get("ok"):
            raise DecodeError(f"telegram 响应缺少 ok 字段: {data!r}")

    def _check_response(self, data: Dict[str, Any]) -> None:
        if "ok" in data and not data["ok"]:
            raise PlatformAPIError(
                "telegram",
                data.get("error_code", -1),
                data.get("description", "")
            )
