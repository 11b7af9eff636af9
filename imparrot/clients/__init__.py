"""
Platform-specific clients

This package contains client implementations for different IM platforms:
- lark: 飞书客户端 (应用模式 / Webhook 模式)
- telegram: Telegram Bot 客户端
- dingtalk: 钉钉群机器人客户端
- wechat: 企业微信应用消息客户端
"""
from .base import BaseClient
from .dingtalk import DingTalkClient, DingTalkConfig
from .lark import LarkClient, LarkConfig
from .telegram import TelegramClient, TelegramConfig
from .wechat import WeChatClient, WeChatConfig

__all__ = [
    "BaseClient",
    "DingTalkClient",
    "DingTalkConfig",
    "LarkClient",
    "LarkConfig",
    "TelegramClient",
    "TelegramConfig",
    "WeChatClient",
    "WeChatConfig",
]
