"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 维护 Provider 与模型配置 (registry)。
- 提供具体实现 (deepseek_client)。
"""

from typing import Optional

from telecom_qa.config.settings import settings
from telecom_qa.providers.base import ProviderClient
from telecom_qa.providers.deepseek_client import DeepSeekClient
from telecom_qa.providers.registry import get_provider_config


def create_provider(name: Optional[str] = None) -> ProviderClient:
    """根据名称创建 Provider 实例，默认取配置中的 provider。"""

    provider_name = (name or getattr(settings, "default_provider", "deepseek")).lower()
    cfg = get_provider_config(provider_name)
    if cfg.name == "deepseek":
        return DeepSeekClient(settings)
    raise KeyError(f"No client for provider: {provider_name!r}")
