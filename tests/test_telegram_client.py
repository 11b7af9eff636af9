"""
Telegram 客户端测试

也覆盖了基类中的响应分类: TransportError / DecodeError / PlatformAPIError
"""
import threading

import httpx
import pytest

from imparrot import (
    DeadlineExceededError,
    DecodeError,
    InvalidArgumentError,
    Message,
    MessageType,
    PartialSendError,
    PlatformAPIError,
    SendCancelledError,
    SendOptions,
    Target,
    TelegramConfig,
    TransportError,
)
from imparrot.clients.telegram import TelegramClient

from conftest import MockAPI, ok


class TestTelegramClient:
    """测试 Telegram 消息发送"""

    def setup_method(self):
        self.api = MockAPI({
            "/sendMessage": [ok({"ok": True, "result": {"message_id": 1}})],
            "/sendPhoto": [ok({"ok": True, "result": {"message_id": 2}})],
        })
        self.client = TelegramClient(TelegramConfig(bot_token="123:abc"), http_client=self.api.client())
        self.delays = []
        self.client._sleep = self.delays.append

    def test_platform_name(self):
        assert self.client.get_platform_name() == "telegram"

    def test_send_text(self):
        result = self.client.send_private_message("42", Message.text("hello"))

        assert result.ok
        request = self.api.requests[0]
        assert request.url.path == "/bot123:abc/sendMessage"
        assert MockAPI.body(request) == {"chat_id": "42", "text": "hello"}

    def test_send_markdown(self):
        self.client.send_group_message("-100", Message.markdown("*bold*"))
        body = MockAPI.body(self.api.requests[0])
        assert body["parse_mode"] == "MarkdownV2"
        assert body["chat_id"] == "-100"

    def test_send_photo(self):
        self.client.send_private_message("42", Message(MessageType.IMAGE, "https://example.com/a.png"))
        request = self.api.requests[0]
        assert request.url.path.endswith("/sendPhoto")
        assert MockAPI.body(request)["photo"] == "https://example.com/a.png"

    def test_title_not_sent(self):
        """title 是消息选项，不合并到请求体"""
        self.client.send_private_message("42", Message.markdown("*hi*", title="标题"))
        assert "title" not in MockAPI.body(self.api.requests[0])

    def test_data_and_extra_merged(self):
        message = Message(MessageType.TEXT, "hi", {"disable_notification": True})
        options = SendOptions(targets=[Target.user("42")], extra={"protect_content": True})
        self.client.send_message(message, options)

        body = MockAPI.body(self.api.requests[0])
        assert body["disable_notification"] is True
        assert body["protect_content"] is True

    def test_multiple_targets(self):
        options = SendOptions(targets=[Target.user("1"), Target.user("2"), Target.group("-3")])
        result = self.client.send_message(Message.text("hi"), options)

        assert result.success_count == 3
        assert [MockAPI.body(r)["chat_id"] for r in self.api.requests] == ["1", "2", "-3"]

    def test_api_error(self):
        """ok=false 的响应重试后记录为失败"""
        self.api.routes["/sendMessage"] = [httpx.Response(
            400, json={"ok": False, "error_code": 400, "description": "Bad Request: chat not found"}
        )]

        with pytest.raises(PartialSendError) as exc_info:
            self.client.send_private_message("404", Message.text("hi"))

        error = exc_info.value.failed_targets[0].error
        assert isinstance(error, PlatformAPIError)
        assert error.code == 400
        assert "chat not found" in error.message
        assert len(self.api.requests) == 3
        assert self.delays == pytest.approx([0.1, 0.2])

    def test_recovers_after_failure(self):
        """失败两次后成功"""
        self.api.routes["/sendMessage"] = [
            ok({"ok": False, "error_code": 429, "description": "Too Many Requests"}),
            ok({"ok": False, "error_code": 429, "description": "Too Many Requests"}),
            ok({"ok": True, "result": {}}),
        ]
        result = self.client.send_private_message("42", Message.text("hi"))
        assert result.ok
        assert len(self.api.requests) == 3

    def test_empty_targets(self):
        with pytest.raises(InvalidArgumentError):
            self.client.send_message(Message.text("hi"), SendOptions(targets=[]))
        assert self.api.requests == []

    def test_missing_options(self):
        with pytest.raises(InvalidArgumentError):
            self.client.send_message(Message.text("hi"), None)


class TestResponseClassification:
    """测试响应分类"""

    def _client(self, handler):
        http = httpx.Client(transport=httpx.MockTransport(handler))
        client = TelegramClient(TelegramConfig(bot_token="t"), http_client=http)
        client._sleep = lambda seconds: None
        return client

    def _error(self, handler):
        client = self._client(handler)
        with pytest.raises(PartialSendError) as exc_info:
            client.send_private_message("42", Message.text("hi"))
        return exc_info.value.failed_targets[0].error

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        assert isinstance(self._error(handler), TransportError)

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        assert isinstance(self._error(handler), TransportError)

    def test_http_error_without_json(self):
        """HTTP 错误且响应不是 JSON"""
        error = self._error(lambda request: httpx.Response(502, text="Bad Gateway"))
        assert isinstance(error, TransportError)
        assert "502" in str(error)

    def test_invalid_json(self):
        error = self._error(lambda request: httpx.Response(200, text="<html>"))
        assert isinstance(error, DecodeError)

    def test_non_object_json(self):
        error = self._error(lambda request: httpx.Response(200, json=[1, 2]))
        assert isinstance(error, DecodeError)

    def test_http_error_with_json_without_code(self):
        """HTTP 错误且 JSON 不带平台错误码 (例如网关错误) 不能算作成功"""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(502, json={"error": "bad gateway"})

        error = self._error(handler)
        assert isinstance(error, TransportError)
        assert "502" in str(error)
        assert len(calls) == 3

    def test_timeout_forwarded(self):
        """调用方的超时传给 httpx"""
        seen = []

        def handler(request):
            seen.append(request.extensions["timeout"])
            return ok({"ok": True})

        client = self._client(handler)
        client._clock = lambda: 100.0
        client.send_private_message("42", Message.text("hi"), timeout=1.5)
        assert seen[0]["read"] == 1.5


class TestTelegramClose:
    """测试资源释放"""

    def test_owned_http_client_closed(self):
        """自建的连接在 close 时关闭"""
        client = TelegramClient(TelegramConfig(bot_token="t"))
        client.close()
        assert client._http.is_closed

    def test_close_idempotent(self):
        client = TelegramClient(TelegramConfig(bot_token="t"))
        client.close()
        client.close()
        assert client.closed

    def test_send_after_close_is_transport_error(self):
        client = TelegramClient(TelegramConfig(bot_token="t"))
        client._sleep = lambda seconds: None
        client.close()

        with pytest.raises(PartialSendError) as exc_info:
            client.send_private_message("42", Message.text("hi"))
        assert isinstance(exc_info.value.failed_targets[0].error, TransportError)

    def test_shared_http_client_not_closed(self):
        http = MockAPI().client()
        client = TelegramClient(TelegramConfig(bot_token="t"), http_client=http)
        client.close()
        assert not http.is_closed

    def test_context_manager(self):
        with TelegramClient(TelegramConfig(bot_token="t")) as client:
            assert not client.closed
        assert client.closed


class TestSendDeadline:
    """测试整个发送调用的超时与取消"""

    def setup_method(self):
        self.now = 0.0
        self.timeouts = []
        self.client = TelegramClient(
            TelegramConfig(bot_token="t"),
            http_client=httpx.Client(transport=httpx.MockTransport(self._slow_failure))
        )
        self.client._clock = lambda: self.now
        self.client._sleep = self._advance

    def _advance(self, seconds):
        self.now += seconds

    def _slow_failure(self, request):
        # 每个请求耗时 0.2s 并返回失败
        self.timeouts.append(request.extensions["timeout"]["read"])
        self.now += 0.2
        return ok({"ok": False, "error_code": 500, "description": "Internal Server Error"})

    def test_timeout_bounds_whole_send(self):
        """3 个目标共用 0.5s，超时后不再重试，剩余目标直接失败"""
        options = SendOptions(targets=[Target.user("a"), Target.user("b"), Target.user("c")])

        with pytest.raises(PartialSendError) as exc_info:
            self.client.send_message(Message.text("hi"), options, timeout=0.5)

        assert self.now == pytest.approx(0.5)
        assert len(self.timeouts) == 2
        # 每个请求只使用剩余的时间
        assert self.timeouts == pytest.approx([0.5, 0.2])
        failed = exc_info.value.failed_targets
        assert [f.target.id for f in failed] == ["a", "b", "c"]
        assert all(isinstance(f.error, DeadlineExceededError) for f in failed)

    def test_cancelled_send(self):
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(PartialSendError) as exc_info:
            self.client.send_private_message("42", Message.text("hi"), cancel=cancel)

        assert self.timeouts == []
        assert isinstance(exc_info.value.failed_targets[0].error, SendCancelledError)
