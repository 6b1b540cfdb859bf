import httpx
import pytest

from telecom_qa.domain.exceptions import ApiError, NetworkError, RateLimitError, ValidationError
from telecom_qa.domain.models import ChatMessage, ChatRequest
from telecom_qa.providers.deepseek_client import DeepSeekClient


class SettingsStub:
    deepseek_api_key = "sk-test-0123456789"
    http_timeout = 1.0
    deepseek_base_url = "https://api.deepseek.com"


def make_request() -> ChatRequest:
    return ChatRequest(
        provider="deepseek",
        model="domain-chat",
        messages=[
            ChatMessage(role="system", content="你是一个通信领域专家"),
            ChatMessage(role="user", content="什么是5G技术？"),
        ],
    )


def install_client(monkeypatch, status_code=200, body=None, raises=None):
    captured = {}

    class Resp:
        def __init__(self):
            self.status_code = status_code
            self.text = "error body"

        def json(self):
            if isinstance(body, Exception):
                raise body
            return body

    class Client:
        def __init__(self, *a, **kw):
            captured["client_kwargs"] = kw

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def post(self, url, json=None, headers=None):
            if raises is not None:
                raise raises
            captured["url"] = url
            captured["json"] = json
            captured["headers"] = headers
            return Resp()

    monkeypatch.setattr("httpx.Client", Client)
    return captured


def ok_body(content="第五代移动通信技术"):
    return {
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}, "finish_reason": "stop"}],
        "usage": {"prompt_tokens": 5, "completion_tokens": 7, "total_tokens": 12},
    }


def test_chat_success_builds_non_streaming_request(monkeypatch):
    captured = install_client(monkeypatch, body=ok_body())
    res = DeepSeekClient(SettingsStub()).chat(make_request())

    assert res.content == "第五代移动通信技术"
    assert res.usage.total_tokens == 12
    assert captured["url"] == "https://api.deepseek.com/chat/completions"
    assert captured["headers"]["Authorization"] == "Bearer sk-test-0123456789"
    assert captured["json"]["model"] == "deepseek-chat"
    assert captured["json"]["stream"] is False
    assert captured["json"]["messages"] == [
        {"role": "system", "content": "你是一个通信领域专家"},
        {"role": "user", "content": "什么是5G技术？"},
    ]


def test_chat_missing_api_key():
    class NoKey(SettingsStub):
        deepseek_api_key = None

    with pytest.raises(ValidationError) as exc:
        DeepSeekClient(NoKey()).chat(make_request())
    assert exc.value.code == "MISSING_API_KEY"


@pytest.mark.parametrize(
    "body",
    [
        {},
        {"choices": []},
        {"choices": [{"message": {}}]},
        {"choices": [{"message": {"content": None}}]},
        {"error": {"message": "invalid"}},
        ["not", "an", "object"],
    ],
)
def test_chat_missing_content_is_bad_response(monkeypatch, body):
    install_client(monkeypatch, body=body)
    with pytest.raises(ApiError) as exc:
        DeepSeekClient(SettingsStub()).chat(make_request())
    assert exc.value.code == "BAD_RESPONSE"


def test_chat_invalid_json_is_bad_response(monkeypatch):
    install_client(monkeypatch, body=ValueError("no json"))
    with pytest.raises(ApiError) as exc:
        DeepSeekClient(SettingsStub()).chat(make_request())
    assert exc.value.code == "BAD_RESPONSE"


def test_chat_http_error_status(monkeypatch):
    install_client(monkeypatch, status_code=500, body={})
    with pytest.raises(ApiError) as exc:
        DeepSeekClient(SettingsStub()).chat(make_request())
    assert exc.value.code == "API_ERROR"
    assert exc.value.http_status == 500


def test_chat_rate_limited(monkeypatch):
    install_client(monkeypatch, status_code=429, body={})
    with pytest.raises(RateLimitError):
        DeepSeekClient(SettingsStub()).chat(make_request())


def test_chat_transport_error(monkeypatch):
    install_client(monkeypatch, raises=httpx.ConnectError("connection refused"))
    with pytest.raises(NetworkError):
        DeepSeekClient(SettingsStub()).chat(make_request())


def test_unknown_logical_model_is_passed_through(monkeypatch):
    captured = install_client(monkeypatch, body=ok_body())
    req = make_request()
    req.model = "deepseek-reasoner"
    DeepSeekClient(SettingsStub()).chat(req)
    assert captured["json"]["model"] == "deepseek-reasoner"


def test_chat_invalid_base_url_is_network_error():
    class BadUrl(SettingsStub):
        deepseek_base_url = "https://api.deepseek.com:notaport"

    with pytest.raises(NetworkError) as exc:
        DeepSeekClient(BadUrl()).chat(make_request())
    assert exc.value.code == "NETWORK_ERROR"


def test_chat_non_ascii_header_is_validation_error(monkeypatch):
    install_client(monkeypatch, raises=UnicodeEncodeError("ascii", "密钥", 0, 1, "ordinal not in range(128)"))
    with pytest.raises(ValidationError) as exc:
        DeepSeekClient(SettingsStub()).chat(make_request())
    assert exc.value.code == "INVALID_REQUEST_HEADER"
