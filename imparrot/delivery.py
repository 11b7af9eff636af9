"""
多目标投递与重试

每个目标最多尝试 3 次，两次尝试之间线性退避 100ms × 尝试次数，
最后一次失败后不再等待。只有 DeliveryError 会被重试，其他异常立即抛出。

调用方的 timeout 是整个发送调用的截止时间 (Deadline)，而不是单个请求的超时:
每次尝试前检查截止时间和取消信号，剩余时间不够退避时不再重试，
之后的目标直接记录为失败。
"""
import logging
import threading
import time
from typing import Callable, Optional, Sequence, TypeVar

from .errors import DeadlineExceededError, DeliveryError, PartialSendError, SendCancelledError
from .types import FailedTarget, SendResult, Target

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
BACKOFF_STEP = 0.1

T = TypeVar("T")


class Deadline:
    """
    一次发送调用的截止时间与取消信号

    Args:
        timeout: 整个调用的超时时间 (秒)，None 表示不限
        cancel: 取消信号，set() 后不再发起新的尝试
        clock: 时钟函数 (测试时可替换)
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self._clock = clock
        self._cancel = cancel
        self._expires_at = None if timeout is None else clock() + timeout

    def remaining(self) -> Optional[float]:
        """剩余时间 (秒)，不限时返回 None"""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - self._clock())

    def check(self) -> None:
        """已取消或已超时则抛出"""
        if self._cancel is not None and self._cancel.is_set():
            raise SendCancelledError("发送已取消")
        if self._expires_at is not None and self._clock() >= self._expires_at:
            raise DeadlineExceededError("deadline exceeded")


def retry_call(
    func: Callable[[], T],
    *,
    max_attempts: int = MAX_ATTEMPTS,
    backoff_step: float = BACKOFF_STEP,
    sleep: Callable[[float], None] = time.sleep,
    deadline: Optional[Deadline] = None,
    description: str = ""
) -> T:
    """
    在重试预算内调用 func

    Args:
        func: 单次投递函数
        max_attempts: 最大尝试次数
        backoff_step: 退避步长 (秒)，第 n 次失败后等待 n × backoff_step
        sleep: 等待函数 (测试时可替换)
        deadline: 截止时间与取消信号
        description: 用于日志的描述

    Returns:
        func 的返回值

    Raises:
        DeliveryError: 所有尝试都失败时，抛出最后一次的错误
        DeadlineExceededError: 截止时间已到，或剩余时间不够下一次退避
        SendCancelledError: 调用方已取消
    """
    last_error: Optional[DeliveryError] = None
    for attempt in range(1, max_attempts + 1):
        if deadline is not None:
            try:
                deadline.check()
            except DeliveryError as e:
                raise e from last_error
        try:
            return func()
        except DeliveryError as e:
            last_error = e
            if attempt < max_attempts:
                delay = backoff_step * attempt
                remaining = deadline.remaining() if deadline is not None else None
                if remaining is not None and remaining <= delay:
                    logger.warning(f"投递失败 {description}: {e}，剩余时间不足，停止重试")
                    raise DeadlineExceededError(f"deadline exceeded: {e}") from e
                logger.warning(
                    f"投递失败 {description} (第 {attempt}/{max_attempts} 次): {e}，"
                    f"{delay:.1f}s 后重试"
                )
                sleep(delay)
    logger.error(f"投递失败 {description}，已重试 {max_attempts} 次: {last_error}")
    raise last_error


def deliver_to_targets(
    targets: Sequence[Target],
    send_one: Callable[[Target], None],
    *,
    max_attempts: int = MAX_ATTEMPTS,
    backoff_step: float = BACKOFF_STEP,
    sleep: Callable[[float], None] = time.sleep,
    deadline: Optional[Deadline] = None
) -> SendResult:
    """
    逐个目标投递，每个目标独立重试

    部分失败是正常结果: 所有目标处理完后，若有失败目标则抛出 PartialSendError。
    截止时间已到或已取消时，剩余目标不再发起请求，直接记录为失败。

    Args:
        targets: 发送目标
        send_one: 对单个目标的单次投递
        max_attempts: 每个目标的最大尝试次数
        backoff_step: 退避步长 (秒)
        sleep: 等待函数
        deadline: 整个调用共用的截止时间与取消信号

    Returns:
        全部成功时的 SendResult

    Raises:
        PartialSendError: 有目标重试耗尽
    """
    success_count = 0
    failed_targets = []

    for target in targets:
        try:
            retry_call(
                lambda: send_one(target),
                max_attempts=max_attempts,
                backoff_step=backoff_step,
                sleep=sleep,
                deadline=deadline,
                description=f"target={target.id}"
            )
        except DeliveryError as e:
            failed_targets.append(FailedTarget(target=target, error=e))
        else:
            success_count += 1

    result = SendResult(
        success_count=success_count,
        total_count=len(targets),
        failed_targets=tuple(failed_targets)
    )
    if failed_targets:
        raise PartialSendError(result)
    return result
