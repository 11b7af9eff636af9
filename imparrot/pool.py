"""
客户端池

适用于需要同时管理大量机器人的消息转发服务:
- 按 key 缓存客户端，同一个 key 同时最多只有一个存活的客户端
- 所有客户端共用一个 httpx.Client
- 后台线程定期关闭空闲过久的客户端
- close() 停止后台线程并关闭所有客户端

使用方式:
    pool = ClientPool(PoolConfig(max_idle_time=600))
    client = pool.get_or_create("lark:bot1", "lark", LarkConfig(app_id=..., app_secret=...))
    client.send_private_message("ou_xxx", Message.text("hello"))
    pool.close()
"""
import logging
import threading
import time
from typing import Callable, Dict, Optional

import httpx

from .config import PoolConfig
from .errors import PoolClosedError
from .factory import ClientFactory, default_factory, validate_config
from .transport import build_http_client
from .types import IMParrot, PlatformConfig

logger = logging.getLogger(__name__)


class ClientPool:
    """客户端池"""

    def __init__(
        self,
        config: Optional[PoolConfig] = None,
        *,
        factory: Optional[ClientFactory] = None,
        http_client: Optional[httpx.Client] = None,
        clock: Callable[[], float] = time.monotonic,
        start_cleanup: bool = True
    ):
        """
        初始化客户端池

        Args:
            config: 池配置，不传则使用默认值
            factory: 客户端工厂，不传则使用内置的四个平台
            http_client: 共享的 httpx.Client；不传则按配置自建，并在 close() 时关闭
            clock: 时钟函数 (测试时可替换)
            start_cleanup: 是否启动后台空闲清理线程
        """
        self.config = config or PoolConfig()
        self.config.validate()
        self._factory = factory or default_factory
        self._owns_http = http_client is None
        self._http = http_client if http_client is not None else build_http_client(
            self.config, self._factory.hosts
        )
        self._clock = clock

        # 两个字典总是在同一把锁内一起修改
        self._lock = threading.Lock()
        self._clients: Dict[str, IMParrot] = {}
        self._last_used: Dict[str, float] = {}
        # 正在创建的 key，创建完成后 set()
        self._creating: Dict[str, threading.Event] = {}
        self._closed = False

        self._stop_event = threading.Event()
        self._cleanup_thread: Optional[threading.Thread] = None
        if start_cleanup:
            self._cleanup_thread = threading.Thread(
                target=self._cleanup_loop,
                name="imparrot-pool-cleanup",
                daemon=True
            )
            self._cleanup_thread.start()

    @property
    def http_client(self) -> httpx.Client:
        return self._http

    @property
    def closed(self) -> bool:
        return self._closed

    # ============== 获取 / 创建 ==============

    def get_or_create(
        self,
        key: str,
        platform: str,
        config: PlatformConfig,
        *,
        timeout: Optional[float] = None
    ) -> IMParrot:
        """
        获取已有客户端，不存在则创建

        同一个 key 并发调用时只会创建一次: 第一个调用者在锁外创建 (可能需要请求 token)，
        其他调用者等待其完成；创建期间其他 key 的操作不受影响。

        Args:
            key: 客户端标识 (例如 "lark:app_id" 或 bot token)
            platform: 平台标签
            config: 平台配置
            timeout: 创建时初始化请求的超时时间 (秒)

        Returns:
            客户端实例

        Raises:
            PoolClosedError: 池已关闭
            ConfigError: 配置错误，不会插入任何条目
            TokenRefreshError: 初始获取 token 失败，不会插入任何条目
        """
        while True:
            with self._lock:
                if self._closed:
                    raise PoolClosedError("客户端池已关闭")

                client = self._clients.get(key)
                if client is not None:
                    self._last_used[key] = self._clock()
                    return client

                creating = self._creating.get(key)
                if creating is None:
                    creating = threading.Event()
                    self._creating[key] = creating
                    break
            # 其他线程正在创建，完成 (或失败) 后重新检查
            creating.wait()

        try:
            validate_config(platform, config)
            client = self._factory.create(
                platform, config, http_client=self._http, timeout=timeout
            )
            with self._lock:
                closed = self._closed
                if not closed:
                    self._clients[key] = client
                    self._last_used[key] = self._clock()
        finally:
            with self._lock:
                self._creating.pop(key, None)
            creating.set()

        if closed:
            client.close()
            raise PoolClosedError("客户端池已关闭")

        logger.info(f"客户端池新增客户端: key={key}, platform={platform}")
        return client

    def get(self, key: str) -> Optional[IMParrot]:
        """获取客户端 (不创建)，命中时刷新最后使用时间"""
        with self._lock:
            client = self._clients.get(key)
            if client is not None:
                self._last_used[key] = self._clock()
            return client

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._clients

    def size(self) -> int:
        with self._lock:
            return len(self._clients)

    def __len__(self) -> int:
        return self.size()

    # ============== 移除 ==============

    def remove(self, key: str) -> None:
        """移除并关闭客户端，key 不存在时直接返回"""
        with self._lock:
            client = self._clients.pop(key, None)
            self._last_used.pop(key, None)

        if client is None:
            return
        client.close()
        logger.info(f"客户端池移除客户端: key={key}")

    # ============== 空闲清理 ==============

    def _cleanup_loop(self) -> None:
        interval = self.config.cleanup_interval
        while not self._stop_event.wait(interval):
            try:
                self.cleanup_idle()
            except Exception as e:
                logger.error(f"清理空闲客户端失败: {e}", exc_info=True)

    def cleanup_idle(self) -> int:
        """
        关闭空闲时间超过 max_idle_time 的客户端

        单个客户端关闭失败只记录日志，不影响其他客户端。

        Returns:
            清理的客户端数量
        """
        with self._lock:
            now = self._clock()
            idle_keys = [
                key for key, last_used in self._last_used.items()
                if now - last_used > self.config.max_idle_time
            ]
            evicted = []
            for key in idle_keys:
                self._last_used.pop(key, None)
                client = self._clients.pop(key, None)
                if client is not None:
                    evicted.append((key, client))

        for key, client in evicted:
            try:
                client.close()
            except Exception as e:
                logger.warning(f"关闭空闲客户端失败: key={key}, error={e}", exc_info=True)

        if evicted:
            logger.info(f"客户端池清理了 {len(evicted)} 个空闲客户端")
        return len(evicted)

    # ============== 关闭 ==============

    def close(self) -> None:
        """
        关闭客户端池

        停止后台清理线程并等待其退出，关闭并移除所有客户端，最后关闭共享连接。
        重复调用无副作用。

        Raises:
            Exception: 关闭客户端时的最后一个错误 (所有客户端仍会被关闭)
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True

        self._stop_event.set()
        if self._cleanup_thread is not None:
            self._cleanup_thread.join()

        with self._lock:
            clients = list(self._clients.items())
            self._clients.clear()
            self._last_used.clear()

        last_error: Optional[Exception] = None
        for key, client in clients:
            try:
                client.close()
            except Exception as e:
                logger.error(f"关闭客户端失败: key={key}, error={e}")
                last_error = e

        if self._owns_http:
            self._http.close()

        logger.info(f"客户端池已关闭，共关闭 {len(clients)} 个客户端")
        if last_error is not None:
            raise last_error

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
