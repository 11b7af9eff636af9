"""
消息类型与平台配置测试
"""
import dataclasses

import pytest

from imparrot import (
    ChatType,
    ConfigValidationError,
    DingTalkConfig,
    LarkConfig,
    Message,
    MessageType,
    SendOptions,
    SendResult,
    Target,
    TelegramConfig,
    WeChatConfig,
)


class TestPlatformConfig:
    """测试配置校验与平台标签"""

    @pytest.mark.parametrize("config, platform", [
        (LarkConfig(app_id="cli_a", app_secret="secret"), "lark"),
        (LarkConfig(webhook_url="https://open.feishu.cn/open-apis/bot/v2/hook/x"), "lark"),
        (TelegramConfig(bot_token="123:abc"), "telegram"),
        (DingTalkConfig(access_token="token"), "dingtalk"),
        (WeChatConfig(corp_id="ww1", corp_secret="secret", agent_id=1000002), "wechat"),
    ])
    def test_valid_config_round_trip(self, config, platform):
        """构建、校验后读取的平台标签与构建时一致"""
        config.validate()
        assert config.get_platform() == platform

    @pytest.mark.parametrize("config", [
        LarkConfig(),
        LarkConfig(app_id="cli_a"),
        LarkConfig(app_secret="secret"),
        TelegramConfig(),
        DingTalkConfig(secret="only-secret"),
        WeChatConfig(corp_id="ww1"),
        WeChatConfig(corp_secret="secret"),
    ])
    def test_missing_required_field(self, config):
        """缺少必填字段时校验失败"""
        with pytest.raises(ConfigValidationError):
            config.validate()

    def test_validation_error_is_value_error(self):
        """ConfigValidationError 同时是 ValueError"""
        with pytest.raises(ValueError, match="bot_token"):
            TelegramConfig().validate()

    def test_lark_webhook_mode(self):
        """设置 webhook_url 后进入 Webhook 模式"""
        assert LarkConfig(webhook_url="https://hook").is_webhook
        assert not LarkConfig(app_id="a", app_secret="b").is_webhook

    def test_config_is_immutable(self):
        """配置构建后不可修改"""
        config = TelegramConfig(bot_token="123:abc")
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.bot_token = "other"


class TestMessage:
    """测试消息与发送选项"""

    def test_text_helper(self):
        message = Message.text("hello", disable_notification=True)
        assert message.type == MessageType.TEXT
        assert message.content == "hello"
        assert message.data == {"disable_notification": True}

    def test_markdown_helper(self):
        message = Message.markdown("**bold**")
        assert message.type == MessageType.MARKDOWN
        assert message.data == {}

    def test_body_fields_skip_title(self):
        """title 供客户端使用，不属于请求体字段"""
        message = Message.markdown("**bold**", title="标题", uuid="dedupe-1")
        assert message.body_fields() == {"uuid": "dedupe-1"}
        assert message.data["title"] == "标题"

    def test_target_helpers(self):
        assert Target.user("u1") == Target("u1", ChatType.PRIVATE)
        assert Target.group("g1").chat_type == ChatType.GROUP

    def test_send_options_defaults(self):
        options = SendOptions()
        assert list(options.targets) == []
        assert list(options.at_users) == []
        assert options.extra == {}

    def test_send_options_preserves_order(self):
        targets = [Target.user("a"), Target.group("b"), Target.user("c")]
        options = SendOptions(targets=targets, at_users=["u1", "u2"], extra={"priority": "high"})
        assert [t.id for t in options.targets] == ["a", "b", "c"]
        assert options.extra["priority"] == "high"

    def test_send_result_ok(self):
        assert SendResult(success_count=2, total_count=2).ok
        assert not SendResult(success_count=1, total_count=2, failed_targets=(object(),)).ok
