"""
Access Token 管理

每个客户端实例持有一个 TokenManager:
- 缓存 token 和过期时间，二者总是在同一把锁内读写
- 过期前 5 分钟即视为失效，触发刷新
- 刷新失败直接抛出 TokenRefreshError，不在这里重试
"""
import logging
import threading
import time
from typing import Callable, Optional, Tuple

from .errors import TokenRefreshError

logger = logging.getLogger(__name__)

# 提前 5 分钟刷新
SAFETY_MARGIN = 300

# fetch(timeout) -> (token, 有效期秒数)
TokenFetcher = Callable[[Optional[float]], Tuple[str, float]]


class TokenManager:
    """单个客户端的 access token 缓存"""

    def __init__(
        self,
        fetch: TokenFetcher,
        name: str = "",
        safety_margin: float = SAFETY_MARGIN,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        初始化

        Args:
            fetch: 向平台请求新 token 的函数，返回 (token, 有效期秒数)
            name: 用于日志的名称
            safety_margin: 提前刷新的秒数
            clock: 时钟函数 (测试时可替换)
        """
        self._fetch = fetch
        self._name = name
        self._safety_margin = safety_margin
        self._clock = clock
        self._lock = threading.Lock()
        self._token = ""
        self._expiry = 0.0

    def get_token(self, timeout: Optional[float] = None) -> str:
        """
        获取有效的 token，过期时自动刷新

        Args:
            timeout: 刷新请求的超时时间 (秒)

        Returns:
            access token
        """
        with self._lock:
            if self._token and self._clock() < self._expiry:
                return self._token
        return self.refresh(timeout)

    def refresh(self, timeout: Optional[float] = None) -> str:
        """
        强制刷新 token

        多个线程可能同时刷新，后写入者生效；token 与过期时间总是一起写入。
        """
        try:
            token, ttl = self._fetch(timeout)
        except Exception as e:
            logger.error(f"获取 {self._name} access token 失败: {e}")
            raise TokenRefreshError(f"获取 {self._name} access token 失败: {e}") from e

        issued_at = self._clock()
        expiry = issued_at + ttl - self._safety_margin
        with self._lock:
            self._token = token
            self._expiry = expiry

        logger.info(f"获取 {self._name} access token 成功，有效期 {ttl} 秒")
        return token

    def clear(self) -> None:
        """清除缓存的 token"""
        with self._lock:
            self._token = ""
            self._expiry = 0.0

    def snapshot(self) -> Tuple[str, float]:
        """返回一致的 (token, 过期时间)"""
        with self._lock:
            return self._token, self._expiry
