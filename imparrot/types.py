"""
统一的消息类型定义

- MessageType / ChatType: 消息类型与会话类型
- Message / Target / SendOptions: 调用方传入的不可变值
- SendResult / FailedTarget: 多目标发送结果
- PlatformConfig: 各平台配置的基类 (带平台标签，自校验)
- IMParrot: 所有平台客户端实现的统一接口
"""
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, Mapping, Optional, Sequence

from .errors import ConfigValidationError

# Message.data 中的消息选项 (例如钉钉 Markdown 的标题)，不属于平台请求字段
MESSAGE_OPTION_KEYS = frozenset({"title"})


class MessageType(str, Enum):
    """消息类型"""
    TEXT = "text"
    MARKDOWN = "markdown"
    CARD = "card"
    IMAGE = "image"


class ChatType(str, Enum):
    """会话类型"""
    PRIVATE = "private"
    GROUP = "group"


@dataclass(frozen=True)
class Message:
    """
    统一消息

    Attributes:
        type: 消息类型
        content: 消息内容 (格式取决于类型: 文本、Markdown、卡片 JSON、图片 key/URL)
        data: 额外的平台相关字段，会合并到请求体中；
            title 等消息选项 (见 MESSAGE_OPTION_KEYS) 由客户端使用，不会合并
    """
    type: MessageType
    content: str
    data: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def text(cls, content: str, **data) -> "Message":
        return cls(MessageType.TEXT, content, data)

    @classmethod
    def markdown(cls, content: str, **data) -> "Message":
        return cls(MessageType.MARKDOWN, content, data)

    def body_fields(self) -> Dict[str, Any]:
        """data 中需要合并到请求体的字段"""
        return {k: v for k, v in self.data.items() if k not in MESSAGE_OPTION_KEYS}


@dataclass(frozen=True)
class Target:
    """发送目标 (用户或群)"""
    id: str
    chat_type: ChatType = ChatType.PRIVATE

    @classmethod
    def user(cls, user_id: str) -> "Target":
        return cls(user_id, ChatType.PRIVATE)

    @classmethod
    def group(cls, group_id: str) -> "Target":
        return cls(group_id, ChatType.GROUP)


@dataclass(frozen=True)
class SendOptions:
    """
    发送选项

    Attributes:
        targets: 发送目标列表 (按顺序投递，结果中保持顺序)
        at_users: 需要 @ 的用户
        extra: 额外参数，会合并到每个请求体中
    """
    targets: Sequence[Target] = ()
    at_users: Sequence[str] = ()
    extra: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class FailedTarget:
    """重试耗尽后仍失败的目标，以及最后一次的错误"""
    target: Target
    error: Exception


@dataclass(frozen=True)
class SendResult:
    """多目标发送的聚合结果"""
    success_count: int
    total_count: int
    failed_targets: tuple = ()

    @property
    def ok(self) -> bool:
        return not self.failed_targets


# ============== 平台配置 ==============

@dataclass(frozen=True)
class PlatformConfig:
    """
    平台配置基类

    子类声明 platform 标签，并在 validate() 中检查必填字段。
    """
    platform: ClassVar[str] = ""

    def get_platform(self) -> str:
        return self.platform

    def validate(self) -> None:
        """校验配置，失败时抛出 ConfigValidationError"""

    def _require(self, *names: str, hint: str = "") -> None:
        for name in names:
            if not getattr(self, name):
                message = f"{self.platform} 配置缺少 {name}"
                if hint:
                    message = f"{message} ({hint})"
                raise ConfigValidationError(message)


# ============== 统一接口 ==============

class IMParrot(ABC):
    """
    所有 IM 平台客户端的统一接口

    不支持某项能力的平台同样实现对应方法，直接抛出 UnsupportedOperationError。
    """

    @abstractmethod
    def send_message(
        self,
        message: Message,
        options: SendOptions,
        *,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None
    ) -> SendResult:
        """
        按发送选项发送消息

        timeout 是整个调用的截止时间 (包括所有目标、重试和 token 刷新)，
        cancel 被 set() 后不再发起新的请求。
        """

    @abstractmethod
    def send_private_message(
        self,
        user_id: str,
        message: Message,
        *,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None
    ) -> SendResult:
        """发送私聊消息"""

    @abstractmethod
    def send_group_message(
        self,
        group_id: str,
        message: Message,
        *,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None
    ) -> SendResult:
        """发送群消息"""

    @abstractmethod
    def get_platform_name(self) -> str:
        """平台名称"""

    @abstractmethod
    def close(self) -> None:
        """释放资源，可重复调用"""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
