"""
客户端工厂

根据平台标签和配置创建对应的客户端。平台与客户端类的对应关系保存在
ClientFactory 的注册表中，可以在测试中替换。
"""
import logging
from typing import Dict, Iterable, Mapping, Optional

import httpx

from .clients import (
    DingTalkClient,
    DingTalkConfig,
    LarkClient,
    LarkConfig,
    TelegramClient,
    TelegramConfig,
    WeChatClient,
    WeChatConfig,
)
from .errors import ConfigTypeMismatchError, InvalidArgumentError, UnknownPlatformError
from .types import IMParrot, PlatformConfig

logger = logging.getLogger(__name__)

PLATFORM_LARK = "lark"
PLATFORM_TELEGRAM = "telegram"
PLATFORM_DINGTALK = "dingtalk"
PLATFORM_WECHAT = "wechat"

DEFAULT_REGISTRY = {
    PLATFORM_LARK: LarkClient,
    PLATFORM_TELEGRAM: TelegramClient,
    PLATFORM_DINGTALK: DingTalkClient,
    PLATFORM_WECHAT: WeChatClient,
}


def validate_config(platform: str, config: Optional[PlatformConfig]) -> None:
    """
    校验配置并检查平台标签

    Raises:
        InvalidArgumentError: 配置为空
        ConfigValidationError: 配置缺少必填字段
        ConfigTypeMismatchError: 配置的平台与请求的平台不一致
    """
    if config is None:
        raise InvalidArgumentError("config 不能为空")
    config.validate()
    if config.get_platform() != platform:
        raise ConfigTypeMismatchError(
            f"配置平台 {config.get_platform()} 与请求的平台 {platform} 不匹配"
        )


class ClientFactory:
    """客户端工厂"""

    def __init__(self, registry: Optional[Mapping[str, type]] = None):
        """
        Args:
            registry: 平台标签 -> 客户端类，不传则使用内置的四个平台
        """
        self._registry: Dict[str, type] = dict(DEFAULT_REGISTRY if registry is None else registry)

    def register(self, platform: str, client_cls: type) -> None:
        self._registry[platform] = client_cls

    @property
    def platforms(self) -> Iterable[str]:
        return tuple(self._registry)

    @property
    def hosts(self) -> Iterable[str]:
        """所有已注册客户端的 API 域名"""
        hosts = []
        for client_cls in self._registry.values():
            for host in getattr(client_cls, "hosts", ()):
                if host not in hosts:
                    hosts.append(host)
        return tuple(hosts)

    def create(
        self,
        platform: str,
        config: PlatformConfig,
        *,
        http_client: Optional[httpx.Client] = None,
        timeout: Optional[float] = None
    ) -> IMParrot:
        """
        创建客户端

        Args:
            platform: 平台标签
            config: 平台配置
            http_client: 共享的 httpx.Client
            timeout: 初始化请求 (获取 token) 的超时时间 (秒)

        Returns:
            客户端实例

        Raises:
            UnknownPlatformError: 平台未注册
            ConfigValidationError / ConfigTypeMismatchError: 配置错误
            TokenRefreshError: 初始获取 token 失败
        """
        client_cls = self._registry.get(platform)
        if client_cls is None:
            raise UnknownPlatformError(platform)

        validate_config(platform, config)

        expected = getattr(client_cls, "config_class", PlatformConfig)
        if not isinstance(config, expected):
            raise ConfigTypeMismatchError(
                f"{platform} 平台需要 {expected.__name__}，实际为 {type(config).__name__}"
            )

        client = client_cls(config, http_client=http_client, timeout=timeout)
        logger.info(f"创建 {platform} 客户端成功")
        return client


default_factory = ClientFactory()


def new_im_client(platform: str, config: PlatformConfig, *, timeout: Optional[float] = None) -> IMParrot:
    """创建独立使用的客户端 (自建 HTTP 连接)"""
    return default_factory.create(platform, config, timeout=timeout)


# ============== 便捷方法 ==============

def new_lark_client(app_id: str, app_secret: str) -> IMParrot:
    return new_im_client(PLATFORM_LARK, LarkConfig(app_id=app_id, app_secret=app_secret))


def new_lark_webhook_client(webhook_url: str) -> IMParrot:
    return new_im_client(PLATFORM_LARK, LarkConfig(webhook_url=webhook_url))


def new_telegram_client(bot_token: str) -> IMParrot:
    return new_im_client(PLATFORM_TELEGRAM, TelegramConfig(bot_token=bot_token))


def new_dingtalk_client(access_token: str, secret: str = "") -> IMParrot:
    return new_im_client(PLATFORM_DINGTALK, DingTalkConfig(access_token=access_token, secret=secret))


def new_wechat_client(corp_id: str, corp_secret: str, agent_id: int = 0) -> IMParrot:
    return new_im_client(
        PLATFORM_WECHAT,
        WeChatConfig(corp_id=corp_id, corp_secret=corp_secret, agent_id=agent_id)
    )
