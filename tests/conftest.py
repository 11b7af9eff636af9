"""
pytest 配置文件
"""
import json
import sys
from pathlib import Path

import httpx
import pytest

# 将包目录添加到 Python 路径
pkg_root = Path(__file__).parent.parent
if str(pkg_root) not in sys.path:
    sys.path.insert(0, str(pkg_root))


class MockAPI:
    """
    记录请求并按路由返回响应的 httpx.MockTransport

    routes: 路径后缀 -> 响应列表 (依次返回，最后一个重复使用) 或函数
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for suffix, responses in self.routes.items():
            if request.url.path.endswith(suffix):
                if callable(responses):
                    return responses(request)
                count = sum(1 for r in self.requests if r.url.path.endswith(suffix))
                return responses[min(count, len(responses)) - 1]
        return httpx.Response(404, text="not found")

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self))

    def calls(self, suffix: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(suffix)]

    @staticmethod
    def body(request: httpx.Request) -> dict:
        return json.loads(request.content)


def ok(payload: dict) -> httpx.Response:
    return httpx.Response(200, json=payload)


@pytest.fixture
def delays():
    """记录退避时间，不真正等待 (赋给 client._sleep = delays.append)"""
    return []
