"""
异常定义

所有异常都继承自 IMParrotError，按阶段分为:
- 参数 / 能力错误: 调用方传参有误或平台不支持该操作，不重试
- 配置错误: 构建客户端时发现，发生在任何网络请求之前
- 投递错误 (DeliveryError): 单次投递失败，会在重试预算内重试 (超时和取消除外)
- PartialSendError: 多目标发送后，部分目标重试耗尽
"""
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .types import SendResult


class IMParrotError(Exception):
    """im-parrot 所有异常的基类"""


class InvalidArgumentError(IMParrotError, ValueError):
    """消息 / 发送选项缺失，或目标列表为空"""


class UnsupportedOperationError(IMParrotError):
    """平台不支持该操作 (例如钉钉机器人发送私聊消息)"""


class PoolClosedError(IMParrotError):
    """客户端池已关闭"""


# ============== 配置错误 ==============

class ConfigError(IMParrotError):
    """配置相关错误的基类"""


class ConfigValidationError(ConfigError, ValueError):
    """配置缺少必填字段或取值非法"""


class ConfigTypeMismatchError(ConfigError, TypeError):
    """配置类型与请求的平台不匹配"""


class UnknownPlatformError(ConfigError):
    """未注册的平台"""

    def __init__(self, platform: str):
        self.platform = platform
        super().__init__(f"不支持的平台: {platform}")


# ============== 投递错误 ==============

class DeliveryError(IMParrotError):
    """单次投递失败，可重试"""


class TransportError(DeliveryError):
    """请求未能完成 (网络错误、超时、连接已关闭)"""


class DeadlineExceededError(TransportError):
    """整个发送调用超过了调用方给定的超时时间"""


class SendCancelledError(DeliveryError):
    """调用方取消了发送"""


class DecodeError(DeliveryError):
    """响应体无法解析"""


class TokenRefreshError(DeliveryError):
    """获取 access token 失败"""


class PlatformAPIError(DeliveryError):
    """平台返回了失败的响应"""

    def __init__(self, platform: str, code, message: str):
        self.platform = platform
        self.code = code
        self.message = message
        super().__init__(f"{platform} API error: code={code}, msg={message}")


# ============== 聚合结果 ==============

class PartialSendError(IMParrotError):
    """
    多目标发送中有目标在重试耗尽后仍然失败

    Attributes:
        result: 完整的 SendResult，包含成功数、总数和失败目标列表
    """

    def __init__(self, result: "SendResult", message: Optional[str] = None):
        self.result = result
        if message is None:
            failed = ", ".join(
                f"{item.target.id}: {item.error}" for item in result.failed_targets
            )
            message = (
                f"发送部分失败: 成功 {result.success_count}/{result.total_count}, "
                f"失败目标: {failed}"
            )
        super().__init__(message)

    @property
    def success_count(self) -> int:
        return self.result.success_count

    @property
    def total_count(self) -> int:
        return self.result.total_count

    @property
    def failed_targets(self):
        return self.result.failed_targets
