"""
共享 HTTP 传输层

客户端池创建一个 httpx.Client 供所有平台客户端共用。
已知的平台域名各自挂载一个 HTTPTransport，以限制每个域名的空闲连接数。
"""
from typing import Iterable, Optional

import httpx

from .config import IDLE_CONN_TIMEOUT, PoolConfig

DEFAULT_TIMEOUT = 30.0


def build_http_client(
    config: Optional[PoolConfig] = None,
    hosts: Iterable[str] = ()
) -> httpx.Client:
    """
    创建共享的 httpx.Client

    Args:
        config: 池配置 (超时与连接数限制)
        hosts: 平台 API 的 base URL，例如 "https://open.feishu.cn"

    Returns:
        httpx.Client
    """
    config = config or PoolConfig()
    mounts = {
        host: httpx.HTTPTransport(
            limits=httpx.Limits(
                max_keepalive_connections=config.max_idle_conns_per_host,
                keepalive_expiry=IDLE_CONN_TIMEOUT
            )
        )
        for host in hosts
    }
    return httpx.Client(
        timeout=config.http_timeout,
        limits=httpx.Limits(
            max_keepalive_connections=config.max_idle_conns,
            keepalive_expiry=IDLE_CONN_TIMEOUT
        ),
        mounts=mounts
    )


def default_http_client() -> httpx.Client:
    """客户端独立使用时自建的 httpx.Client"""
    return httpx.Client(timeout=DEFAULT_TIMEOUT)
