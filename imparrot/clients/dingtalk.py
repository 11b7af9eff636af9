"""
钉钉群机器人客户端

只支持通过 Webhook 发送群消息:
- access_token 拼在 URL 中
- 配置了加签 secret 时附带 timestamp 和 sign
- 没有私聊能力
"""
import base64
import hashlib
import hmac
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from ..delivery import Deadline
from ..errors import PlatformAPIError
from ..types import Message, MessageType, PlatformConfig, SendOptions, SendResult
from .base import BaseClient

logger = logging.getLogger(__name__)

DINGTALK_WEBHOOK_URL = "https://oapi.dingtalk.com/robot/send"


@dataclass(frozen=True)
class DingTalkConfig(PlatformConfig):
    """
    钉钉机器人配置

    Attributes:
        access_token: 机器人 Webhook 的 access_token
        secret: 加签密钥 (可选)
        base_url: 自定义 Webhook 地址
    """
    platform = "dingtalk"

    access_token: str = ""
    secret: str = ""
    base_url: str = ""

    def validate(self) -> None:
        self._require("access_token")


def sign(timestamp: int, secret: str) -> str:
    """
    计算加签

    Args:
        timestamp: 毫秒时间戳
        secret: 加签密钥

    Returns:
        base64 编码的 HMAC-SHA256 签名
    """
    string_to_sign = f"{timestamp}\n{secret}"
    digest = hmac.new(secret.encode("utf-8"), string_to_sign.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


class DingTalkClient(BaseClient):
    """钉钉群机器人客户端"""

    platform_name = "dingtalk"
    config_class = DingTalkConfig
    hosts = ("https://oapi.dingtalk.com",)

    def __init__(
        self,
        config: DingTalkConfig,
        http_client: Optional[httpx.Client] = None,
        timeout: Optional[float] = None
    ):
        # 无需初始化请求，timeout 仅为保持构造签名一致
        super().__init__(config, http_client)
        self.webhook_url = config.base_url or DINGTALK_WEBHOOK_URL

    def _send(self, message: Message, options: SendOptions, deadline: Deadline) -> SendResult:
        # 所有消息都发往同一个 Webhook，忽略目标列表
        return self._send_webhook(
            lambda: self._send_via_webhook(message, options, deadline),
            deadline,
            description="dingtalk webhook"
        )

    def send_private_message(
        self,
        user_id: str,
        message: Message,
        *,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None
    ) -> SendResult:
        self._unsupported("私聊消息")

    def _build_params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {"access_token": self.config.access_token}
        if self.config.secret:
            timestamp = int(time.time() * 1000)
            params["timestamp"] = timestamp
            params["sign"] = sign(timestamp, self.config.secret)
        return params

    def _send_via_webhook(self, message: Message, options: SendOptions, deadline: Deadline) -> None:
        if message.type == MessageType.MARKDOWN:
            payload: Dict[str, Any] = {
                "msgtype": "markdown",
                "markdown": {
                    "title": message.data.get("title", "Message"),
                    "text": message.content
                }
            }
        elif message.type == MessageType.IMAGE:
            payload = {
                "msgtype": "markdown",
                "markdown": {
                    "title": message.data.get("title", "Image"),
                    "text": f"![image]({message.content})"
                }
            }
        else:
            payload = {
                "msgtype": "text",
                "text": {"content": message.content}
            }

        if options.at_users:
            payload["at"] = {
                "atMobiles": list(options.at_users),
                "isAtAll": False
            }
        payload.update(message.body_fields())
        payload.update(options.extra)

        data = self._request_json(
            "POST",
            self.webhook_url,
            params=self._build_params(),
            json=payload,
            timeout=deadline.remaining()
        )
        self._check_response(data)

    def _check_response(self, data: Dict[str, Any]) -> None:
        if data.get("errcode", 0) != 0:
            raise PlatformAPIError("dingtalk", data.get("errcode"), data.get("errmsg", ""))
