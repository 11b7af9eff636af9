"""
平台客户端基类

封装各平台共用的逻辑:
- HTTP 传输: 使用共享的 httpx.Client，或在独立使用时自建并负责关闭
- 响应分类: 网络错误 -> TransportError，无法解析 -> DecodeError，
  错误状态码 -> 平台错误码 (PlatformAPIError) 或 TransportError
- 多目标投递与重试，整个调用共用一个截止时间
- 幂等的 close()
"""
import logging
import threading
import time
from typing import Any, Callable, ClassVar, Dict, Optional, Tuple

import httpx

from ..delivery import Deadline, deliver_to_targets, retry_call
from ..errors import (
    DecodeError,
    InvalidArgumentError,
    TransportError,
    UnsupportedOperationError,
)
from ..token import TokenManager
from ..transport import default_http_client
from ..types import IMParrot, Message, PlatformConfig, SendOptions, SendResult, Target

logger = logging.getLogger(__name__)


class BaseClient(IMParrot):
    """平台客户端基类"""

    platform_name: ClassVar[str] = ""
    config_class: ClassVar[type] = PlatformConfig
    # 平台 API 的 base URL，用于共享连接池的按域名限流
    hosts: ClassVar[Tuple[str, ...]] = ()

    def __init__(self, config: PlatformConfig, http_client: Optional[httpx.Client] = None):
        """
        初始化客户端

        Args:
            config: 平台配置
            http_client: 共享的 httpx.Client；不传则自建，并在 close() 时关闭
        """
        self.config = config
        self._owns_http = http_client is None
        self._http = http_client if http_client is not None else default_http_client()
        self._tokens: Optional[TokenManager] = None
        self._closed = False
        self._close_lock = threading.Lock()
        # 重试退避的等待函数与截止时间的时钟 (测试时可替换)
        self._sleep: Callable[[float], None] = time.sleep
        self._clock: Callable[[], float] = time.monotonic

    def get_platform_name(self) -> str:
        return self.platform_name

    @property
    def closed(self) -> bool:
        return self._closed

    # ============== 消息发送 ==============

    def send_message(
        self,
        message: Message,
        options: SendOptions,
        *,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None
    ) -> SendResult:
        """
        发送消息

        Args:
            message: 消息
            options: 发送选项 (目标、@ 用户、额外参数)
            timeout: 整个调用的超时时间 (秒)，每个请求只使用剩余的时间
            cancel: 取消信号，set() 后剩余目标不再发送

        Returns:
            SendResult

        Raises:
            InvalidArgumentError: 消息或选项缺失，或目标为空
            PartialSendError: 有目标重试耗尽、超时或被取消
        """
        if message is None or options is None:
            raise InvalidArgumentError("message 和 options 不能为空")
        deadline = Deadline(timeout, cancel, clock=self._clock)
        return self._send(message, options, deadline)

    def send_private_message(
        self,
        user_id: str,
        message: Message,
        *,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None
    ) -> SendResult:
        return self.send_message(
            message,
            SendOptions(targets=(Target.user(user_id),)),
            timeout=timeout,
            cancel=cancel
        )

    def send_group_message(
        self,
        group_id: str,
        message: Message,
        *,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None
    ) -> SendResult:
        return self.send_message(
            message,
            SendOptions(targets=(Target.group(group_id),)),
            timeout=timeout,
            cancel=cancel
        )

    def _send(self, message: Message, options: SendOptions, deadline: Deadline) -> SendResult:
        """默认行为: 逐个目标投递并重试"""
        if not options.targets:
            raise InvalidArgumentError("至少需要一个发送目标")
        return deliver_to_targets(
            options.targets,
            lambda target: self._send_to_target(message, target, options, deadline),
            sleep=self._sleep,
            deadline=deadline
        )

    def _send_to_target(
        self,
        message: Message,
        target: Target,
        options: SendOptions,
        deadline: Deadline
    ) -> None:
        """对单个目标的单次投递，由子类实现；每个请求使用 deadline.remaining() 作为超时"""
        raise NotImplementedError

    def _send_webhook(self, send: Callable[[], None], deadline: Deadline, description: str) -> SendResult:
        """Webhook 模式: 没有目标列表，整体作为一次投递重试"""
        retry_call(send, sleep=self._sleep, deadline=deadline, description=description)
        return SendResult(success_count=1, total_count=1)

    def _unsupported(self, operation: str):
        raise UnsupportedOperationError(f"{self.platform_name} 不支持 {operation}")

    # ============== HTTP ==============

    def _request_json(
        self,
        method: str,
        url: str,
        *,
        timeout: Optional[float] = None,
        **kwargs
    ) -> Dict[str, Any]:
        """
        发送请求并解析 JSON 响应

        Returns:
            响应 JSON 对象

        Raises:
            TransportError: 请求未完成，或 HTTP 错误且响应不带平台错误码
            PlatformAPIError: HTTP 错误且响应带平台错误码
            DecodeError: 响应无法解析为 JSON 对象
        """
        request_timeout = httpx.USE_CLIENT_DEFAULT if timeout is None else timeout
        try:
            response = self._http.request(method, url, timeout=request_timeout, **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(f"{self.platform_name} 请求失败: {e}") from e
        except RuntimeError as e:
            # httpx.Client 已关闭
            raise TransportError(f"{self.platform_name} 连接已关闭: {e}") from e

        http_error = TransportError(
            f"{self.platform_name} HTTP {response.status_code}: {response.text[:200]}"
        )
        try:
            data = response.json()
        except ValueError as e:
            if response.is_error:
                raise http_error from e
            raise DecodeError(f"{self.platform_name} 响应无法解析: {e}") from e

        if not isinstance(data, dict):
            if response.is_error:
                raise http_error
            raise DecodeError(f"{self.platform_name} 响应格式错误: {data!r}")

        if response.is_error:
            # 错误状态码: 响应带平台错误码时按平台错误处理，否则 (例如网关错误) 视为传输错误
            self._check_response(data)
            raise http_error
        return data

    def _check_response(self, data: Dict[str, Any]) -> None:
        """检查平台响应信封，失败时抛出 PlatformAPIError，由子类实现"""

    def _get_token(self, timeout: Optional[float] = None) -> str:
        return self._tokens.get_token(timeout)

    # ============== 资源释放 ==============

    def close(self) -> None:
        """释放资源，重复调用无副作用"""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        if self._owns_http:
            self._http.close()
        if self._tokens is not None:
            self._tokens.clear()
        logger.debug(f"{self.platform_name} 客户端已关闭")

    def _close_on_init_failure(self) -> None:
        """构造失败时释放自建的连接"""
        if self._owns_http:
            self._http.close()
