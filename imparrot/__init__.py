"""
im-parrot: 统一的 IM 消息发送客户端

支持飞书、Telegram、钉钉群机器人、企业微信，所有平台实现同一个 IMParrot 接口。
"""
import logging

from .clients import (
    DingTalkClient,
    DingTalkConfig,
    LarkClient,
    LarkConfig,
    TelegramClient,
    TelegramConfig,
    WeChatClient,
    WeChatConfig,
)
from .config import PoolConfig
from .delivery import Deadline
from .errors import (
    ConfigError,
    ConfigTypeMismatchError,
    ConfigValidationError,
    DeadlineExceededError,
    DecodeError,
    DeliveryError,
    IMParrotError,
    InvalidArgumentError,
    PartialSendError,
    PlatformAPIError,
    PoolClosedError,
    SendCancelledError,
    TokenRefreshError,
    TransportError,
    UnknownPlatformError,
    UnsupportedOperationError,
)
from .factory import (
    PLATFORM_DINGTALK,
    PLATFORM_LARK,
    PLATFORM_TELEGRAM,
    PLATFORM_WECHAT,
    ClientFactory,
    new_dingtalk_client,
    new_im_client,
    new_lark_client,
    new_lark_webhook_client,
    new_telegram_client,
    new_wechat_client,
)
from .pool import ClientPool
from .types import (
    ChatType,
    FailedTarget,
    IMParrot,
    Message,
    MessageType,
    PlatformConfig,
    SendOptions,
    SendResult,
    Target,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    "ChatType",
    "ClientFactory",
    "ClientPool",
    "ConfigError",
    "ConfigTypeMismatchError",
    "ConfigValidationError",
    "Deadline",
    "DeadlineExceededError",
    "DecodeError",
    "DeliveryError",
    "DingTalkClient",
    "DingTalkConfig",
    "FailedTarget",
    "IMParrot",
    "IMParrotError",
    "InvalidArgumentError",
    "LarkClient",
    "LarkConfig",
    "Message",
    "MessageType",
    "PLATFORM_DINGTALK",
    "PLATFORM_LARK",
    "PLATFORM_TELEGRAM",
    "PLATFORM_WECHAT",
    "PartialSendError",
    "PlatformAPIError",
    "PlatformConfig",
    "PoolClosedError",
    "PoolConfig",
    "SendCancelledError",
    "SendOptions",
    "SendResult",
    "Target",
    "TelegramClient",
    "TelegramConfig",
    "TokenRefreshError",
    "TransportError",
    "UnknownPlatformError",
    "UnsupportedOperationError",
    "WeChatClient",
    "WeChatConfig",
    "new_dingtalk_client",
    "new_im_client",
    "new_lark_client",
    "new_lark_webhook_client",
    "new_telegram_client",
    "new_wechat_client",
]
