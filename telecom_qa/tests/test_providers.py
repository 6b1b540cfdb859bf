import pytest

from telecom_qa.providers import create_provider
from telecom_qa.providers.deepseek_client import DeepSeekClient
from telecom_qa.providers.registry import DEEPSEEK_CONFIG, get_provider_config, resolve_model


def test_create_provider_default(monkeypatch):
    class DummySettings:
        default_provider = "deepseek"
        deepseek_api_key = "sk-test-0123456789"
        http_timeout = 1.0
        deepseek_base_url = "https://api.deepseek.com"

    monkeypatch.setattr("telecom_qa.providers.settings", DummySettings())
    provider = create_provider()
    assert isinstance(provider, DeepSeekClient)
    assert provider.name == "deepseek"


def test_create_provider_unknown():
    with pytest.raises(KeyError):
        create_provider("nope")


def test_registry_lookup_is_case_insensitive():
    assert get_provider_config("DeepSeek") is DEEPSEEK_CONFIG


def test_resolve_model_maps_logical_name():
    assert resolve_model(DEEPSEEK_CONFIG, "domain-chat").provider_model == "deepseek-chat"
