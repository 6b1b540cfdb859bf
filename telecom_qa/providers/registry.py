"""Provider 与模型配置。

逻辑模型名（如 "domain-chat"）与厂商模型 ID（如 "deepseek-chat"）解耦，
上层只使用逻辑名，具体用哪个底层模型在这里集中配置。"""

from dataclasses import dataclass
from typing import Dict, Mapping


@dataclass
class ModelConfig:
    """单个逻辑模型的配置。"""

    logical_name: str
    provider_model: str
    max_tokens: int
    default_temperature: float


@dataclass
class ProviderConfig:
    """某个 Provider 的整体配置。"""

    name: str
    base_url: str
    models: Dict[str, ModelConfig]


DEEPSEEK_CONFIG = ProviderConfig(
    name="deepseek",
    base_url="https://api.deepseek.com",
    models={
        "domain-chat": ModelConfig(
            logical_name="domain-chat",
            provider_model="deepseek-chat",
            max_tokens=4096,
            default_temperature=0.7,
        )
    },
)


PROVIDER_REGISTRY: Mapping[str, ProviderConfig] = {
    "deepseek": DEEPSEEK_CONFIG,
}


def get_provider_config(name: str) -> ProviderConfig:
    """根据名称获取 ProviderConfig，名称不区分大小写。"""

    key = name.lower()
    for k, cfg in PROVIDER_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise KeyError(f"Unknown provider: {name!r}")


def resolve_model(cfg: ProviderConfig, logical_name: str) -> ModelConfig:
    """找不到逻辑名时把它当作厂商模型 ID 直接使用。"""

    model_cfg = cfg.models.get(logical_name)
    if model_cfg is not None:
        return model_cfg
    default = next(iter(cfg.models.values()))
    return ModelConfig(
        logical_name=logical_name,
        provider_model=logical_name,
        max_tokens=default.max_tokens,
        default_temperature=default.default_temperature,
    )
