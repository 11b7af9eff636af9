"""
客户端池配置

环境变量:
    IMPARROT_MAX_IDLE_TIME: 客户端最大空闲时间 (秒)，默认 1800
    IMPARROT_CLEANUP_INTERVAL: 空闲检查间隔 (秒)，默认 300
    IMPARROT_HTTP_TIMEOUT: 单个请求超时 (秒)，默认 30
    IMPARROT_MAX_IDLE_CONNS: 共享连接池最大空闲连接数，默认 100
    IMPARROT_MAX_IDLE_CONNS_PER_HOST: 每个平台域名的最大空闲连接数，默认 10
"""
import logging
import os
from dataclasses import dataclass

from .errors import ConfigValidationError

logger = logging.getLogger(__name__)

DEFAULT_MAX_IDLE_TIME = 30 * 60
DEFAULT_CLEANUP_INTERVAL = 5 * 60
DEFAULT_HTTP_TIMEOUT = 30.0
DEFAULT_MAX_IDLE_CONNS = 100
DEFAULT_MAX_IDLE_CONNS_PER_HOST = 10

# 空闲连接保活时间 (秒)
IDLE_CONN_TIMEOUT = 90.0


@dataclass
class PoolConfig:
    """客户端池配置"""
    max_idle_time: float = DEFAULT_MAX_IDLE_TIME
    cleanup_interval: float = DEFAULT_CLEANUP_INTERVAL
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    max_idle_conns: int = DEFAULT_MAX_IDLE_CONNS
    max_idle_conns_per_host: int = DEFAULT_MAX_IDLE_CONNS_PER_HOST

    def validate(self) -> None:
        for name in ("max_idle_time", "cleanup_interval", "http_timeout"):
            if getattr(self, name) <= 0:
                raise ConfigValidationError(f"{name} 必须大于 0")
        for name in ("max_idle_conns", "max_idle_conns_per_host"):
            if getattr(self, name) < 0:
                raise ConfigValidationError(f"{name} 不能为负数")

    @classmethod
    def from_env(cls) -> "PoolConfig":
        """
        从环境变量加载配置，未设置的项使用默认值

        Raises:
            ConfigValidationError: 环境变量无法解析或取值非法
        """
        config = cls(
            max_idle_time=_env("IMPARROT_MAX_IDLE_TIME", float, DEFAULT_MAX_IDLE_TIME),
            cleanup_interval=_env("IMPARROT_CLEANUP_INTERVAL", float, DEFAULT_CLEANUP_INTERVAL),
            http_timeout=_env("IMPARROT_HTTP_TIMEOUT", float, DEFAULT_HTTP_TIMEOUT),
            max_idle_conns=_env("IMPARROT_MAX_IDLE_CONNS", int, DEFAULT_MAX_IDLE_CONNS),
            max_idle_conns_per_host=_env(
                "IMPARROT_MAX_IDLE_CONNS_PER_HOST", int, DEFAULT_MAX_IDLE_CONNS_PER_HOST
            )
        )
        config.validate()

        logger.info(
            f"客户端池配置: max_idle_time={config.max_idle_time}s, "
            f"cleanup_interval={config.cleanup_interval}s, "
            f"http_timeout={config.http_timeout}s"
        )
        return config


def _env(name: str, convert, default):
    value = os.getenv(name)
    if not value:
        return default
    try:
        return convert(value)
    except ValueError as e:
        raise ConfigValidationError(f"环境变量 {name} 格式错误: {value!r}") from e
