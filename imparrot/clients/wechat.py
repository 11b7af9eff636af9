"""
企业微信应用消息客户端

使用 corp_id + corp_secret 获取 access_token，通过应用 (agent_id) 发送消息:
- 私聊: touser
- 群聊: toparty (部门)
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import httpx

from ..delivery import Deadline
from ..errors import PlatformAPIError
from ..token import TokenManager
from ..types import ChatType, Message, MessageType, PlatformConfig, SendOptions, Target
from .base import BaseClient

logger = logging.getLogger(__name__)

WECHAT_BASE_URL = "https://qyapi.weixin.qq.com/cgi-bin"


@dataclass(frozen=True)
class WeChatConfig(PlatformConfig):
    """
    企业微信配置

    Attributes:
        corp_id: 企业 ID
        corp_secret: 应用 Secret
        agent_id: 应用 AgentId
        base_url: 自定义 API 地址
    """
    platform = "wechat"

    corp_id: str = ""
    corp_secret: str = ""
    agent_id: int = 0
    base_url: str = ""

    def validate(self) -> None:
        self._require("corp_id", "corp_secret")


class WeChatClient(BaseClient):
    """企业微信应用消息客户端"""

    platform_name = "wechat"
    config_class = WeChatConfig
    hosts = ("https://qyapi.weixin.qq.com",)

    def __init__(
        self,
        config: WeChatConfig,
        http_client: Optional[httpx.Client] = None,
        timeout: Optional[float] = None
    ):
        """
        初始化客户端，并立即获取一次 access_token

        Args:
            config: 企业微信配置
            http_client: 共享的 httpx.Client
            timeout: 初始获取 token 的超时时间 (秒)
        """
        super().__init__(config, http_client)
        self.base_url = (config.base_url or WECHAT_BASE_URL).rstrip("/")
        self._tokens = TokenManager(self._fetch_access_token, name="wechat")
        try:
            self._tokens.get_token(timeout)
        except Exception:
            self._close_on_init_failure()
            raise

    def _fetch_access_token(self, timeout: Optional[float]) -> Tuple[str, float]:
        params = {
            "corpid": self.config.corp_id,
            "corpsecret": self.config.corp_secret
        }
        data = self._request_json("GET", f"{self.base_url}/gettoken", params=params, timeout=timeout)
        self._check_response(data)
        return data["access_token"], data.get("expires_in", 7200)

    def _send_to_target(
        self,
        message: Message,
        target: Target,
        options: SendOptions,
        deadline: Deadline
    ) -> None:
        token = self._get_token(deadline.remaining())

        payload: Dict[str, Any] = {"agentid": self.config.agent_id}
        if target.chat_type == ChatType.PRIVATE:
            payload["touser"] = target.id
        else:
            payload["toparty"] = target.id

        if message.type == MessageType.MARKDOWN:
            payload["msgtype"] = "markdown"
            payload["markdown"] = {"content": message.content}
        elif message.type == MessageType.IMAGE:
            payload["msgtype"] = "image"
            payload["image"] = {"media_id": message.content}
        else:
            payload["msgtype"] = "text"
            payload["text"] = {"content": message.content}

        payload.update(message.body_fields())
        payload.update(options.extra)

        data = self._request_json(
            "POST",
            f"{self.base_url}/message/send",
            params={"access_token": token},
            json=payload,
            timeout=deadline.remaining()
        )
        self._check_response(data)

    def _check_response(self, data: Dict[str, Any]) -> None:
        if data.get("errcode", 0) != 0:
            raise PlatformAPIError("wechat", data.get("errcode"), data.get("errmsg", ""))
