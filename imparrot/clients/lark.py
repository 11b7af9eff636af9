"""
飞书 (Lark) 客户端

两种模式:
- 应用模式 (app_id + app_secret): 使用 tenant_access_token 调用开放平台 API，
  支持私聊 / 群聊多目标发送、通过手机号或邮箱查询 open_id
- Webhook 模式 (webhook_url): 群自定义机器人，只能发送到 Webhook 所在的群
"""
import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import httpx

from ..delivery import Deadline
from ..errors import InvalidArgumentError, PlatformAPIError
from ..token import TokenManager
from ..types import ChatType, Message, MessageType, PlatformConfig, SendOptions, SendResult, Target
from .base import BaseClient

logger = logging.getLogger(__name__)

LARK_BASE_URL = "https://open.feishu.cn/open-apis"


@dataclass(frozen=True)
class LarkConfig(PlatformConfig):
    """
    飞书配置

    Attributes:
        app_id: 应用 ID
        app_secret: 应用 Secret
        webhook_url: 群机器人 Webhook 地址 (设置后进入 Webhook 模式)
        base_url: 自定义 API 地址 (代理或测试用)
    """
    platform = "lark"

    app_id: str = ""
    app_secret: str = ""
    webhook_url: str = ""
    base_url: str = ""

    @property
    def is_webhook(self) -> bool:
        return bool(self.webhook_url)

    def validate(self) -> None:
        # Webhook 模式只需要 webhook_url
        if self.is_webhook:
            return
        self._require("app_id", "app_secret", hint="或提供 webhook_url 使用 Webhook 模式")


class LarkClient(BaseClient):
    """飞书/Lark 客户端"""

    platform_name = "lark"
    config_class = LarkConfig
    hosts = ("https://open.feishu.cn",)

    def __init__(
        self,
        config: LarkConfig,
        http_client: Optional[httpx.Client] = None,
        timeout: Optional[float] = None
    ):
        """
        初始化客户端

        应用模式下会立即获取一次 tenant_access_token，失败则抛出 TokenRefreshError。

        Args:
            config: 飞书配置
            http_client: 共享的 httpx.Client
            timeout: 初始获取 token 的超时时间 (秒)
        """
        super().__init__(config, http_client)
        self.base_url = (config.base_url or LARK_BASE_URL).rstrip("/")

        if not config.is_webhook:
            self._tokens = TokenManager(self._fetch_tenant_access_token, name="lark")
            try:
                self._tokens.get_token(timeout)
            except Exception:
                self._close_on_init_failure()
                raise

    # ============== Token 管理 ==============

    def _fetch_tenant_access_token(self, timeout: Optional[float]) -> Tuple[str, float]:
        """请求 tenant_access_token，返回 (token, 有效期秒数)"""
        url = f"{self.base_url}/auth/v3/tenant_access_token/internal"
        payload = {
            "app_id": self.config.app_id,
            "app_secret": self.config.app_secret
        }
        data = self._request_json("POST", url, json=payload, timeout=timeout)
        self._check_response(data)
        # Token 有效期默认 2 小时
        return data["tenant_access_token"], data.get("expire", 7200)

    # ============== 消息发送 ==============

    def _send(self, message: Message, options: SendOptions, deadline: Deadline) -> SendResult:
        if self.config.is_webhook:
            return self._send_webhook(
                lambda: self._send_via_webhook(message, options, deadline),
                deadline,
                description="lark webhook"
            )
        return super()._send(message, options, deadline)

    def send_private_message(
        self,
        user_id: str,
        message: Message,
        *,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None
    ) -> SendResult:
        if self.config.is_webhook:
            self._unsupported("Webhook 模式下的私聊消息")
        return super().send_private_message(user_id, message, timeout=timeout, cancel=cancel)

    def _send_to_target(
        self,
        message: Message,
        target: Target,
        options: SendOptions,
        deadline: Deadline
    ) -> None:
        token = self._get_token(deadline.remaining())

        # 私聊使用 open_id，群聊使用 chat_id
        receive_id_type = "chat_id" if target.chat_type == ChatType.GROUP else "open_id"
        msg_type, content = self._build_content(message, options)

        payload: Dict[str, Any] = {
            "receive_id": target.id,
            "msg_type": msg_type,
            "content": content
        }
        payload.update(message.body_fields())
        payload.update(options.extra)

        headers = {"Authorization": f"Bearer {token}"}
        data = self._request_json(
            "POST",
            f"{self.base_url}/im/v1/messages",
            params={"receive_id_type": receive_id_type},
            headers=headers,
            json=payload,
            timeout=deadline.remaining()
        )
        self._check_response(data)

    def _build_content(self, message: Message, options: SendOptions) -> Tuple[str, str]:
        """构建 (msg_type, content JSON 字符串)"""
        if message.type == MessageType.TEXT:
            text = message.content
            if options.at_users:
                mentions = "".join(f'<at user_id="{user_id}"></at> ' for user_id in options.at_users)
                text = mentions + text
            return "text", json.dumps({"text": text}, ensure_ascii=False)
        if message.type == MessageType.MARKDOWN:
            post = {
                "zh_cn": {
                    "content": [[{"tag": "md", "text": message.content}]]
                }
            }
            return "post", json.dumps(post, ensure_ascii=False)
        if message.type == MessageType.CARD:
            # 卡片内容本身就是 JSON
            return "interactive", message.content
        if message.type == MessageType.IMAGE:
            return "image", json.dumps({"image_key": message.content})
        raise InvalidArgumentError(f"不支持的消息类型: {message.type}")

    def _send_via_webhook(self, message: Message, options: SendOptions, deadline: Deadline) -> None:
        """通过 Webhook 发送"""
        if message.type in (MessageType.MARKDOWN, MessageType.CARD):
            payload: Dict[str, Any] = {
                "msg_type": "interactive",
                "card": {
                    "elements": [
                        {"tag": "markdown", "content": message.content}
                    ]
                }
            }
        else:
            payload = {
                "msg_type": "text",
                "content": {"text": message.content}
            }
        payload.update(message.body_fields())
        payload.update(options.extra)

        data = self._request_json(
            "POST", self.config.webhook_url, json=payload, timeout=deadline.remaining()
        )
        self._check_response(data)

    def _check_response(self, data: Dict[str, Any]) -> None:
        code = data.get("code", data.get("StatusCode", 0))
        if code != 0:
            raise PlatformAPIError("lark", code, data.get("msg") or data.get("StatusMessage", ""))

    # ============== 用户查询 ==============

    def get_open_id_by_mobile(self, mobile: str, *, timeout: Optional[float] = None) -> str:
        """
        通过手机号查询用户 open_id

        Args:
            mobile: 手机号
            timeout: 超时时间 (秒)

        Returns:
            open_id
        """
        return self._batch_get_id({"mobiles": [mobile]}, f"mobile={mobile}", timeout)

    def get_open_id_by_email(self, email: str, *, timeout: Optional[float] = None) -> str:
        """
        通过邮箱查询用户 open_id

        Args:
            email: 邮箱
            timeout: 超时时间 (秒)

        Returns:
            open_id
        """
        return self._batch_get_id({"emails": [email]}, f"email={email}", timeout)

    def _batch_get_id(self, payload: Dict[str, Any], description: str, timeout: Optional[float]) -> str:
        if self.config.is_webhook:
            self._unsupported("Webhook 模式下的用户查询")

        token = self._get_token(timeout)
        data = self._request_json(
            "POST",
            f"{self.base_url}/contact/v3/users/batch_get_id",
            params={"user_id_type": "open_id"},
            headers={"Authorization": f"Bearer {token}"},
            json=payload,
            timeout=timeout
        )
        self._check_response(data)

        users = [
            user for user in data.get("data", {}).get("user_list", [])
            if user.get("user_id")
        ]
        if not users:
            raise PlatformAPIError("lark", "user_not_found", f"未找到用户: {description}")
        return users[0]["user_id"]
