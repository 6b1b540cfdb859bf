"""DeepSeek Provider 适配器。

OpenAI 兼容的 chat/completions 端点：
- URL: {base_url}/chat/completions
- 认证: Authorization: Bearer <api_key>（只从配置读取）

只依赖公共字段：model/messages/temperature/max_tokens/stream，始终非流式。
"""

from typing import Any, Dict

import httpx

from telecom_qa.config.settings import settings
from telecom_qa.domain.exceptions import ApiError, NetworkError, RateLimitError, ValidationError
from telecom_qa.domain.models import ChatMessage, ChatRequest, ChatResult, ChatUsage
from telecom_qa.providers.registry import DEEPSEEK_CONFIG, ModelConfig, resolve_model


class DeepSeekClient:
    """DeepSeek Provider 客户端实现。"""

    name = "deepseek"

    def __init__(self, cfg=settings):
        self._settings = cfg

    def chat(self, req: ChatRequest) -> ChatResult:
        api_key = getattr(self._settings, "deepseek_api_key", None)
        if not api_key:
            raise ValidationError(code="MISSING_API_KEY", message="DEEPSEEK_API_KEY not set")
        model_cfg = resolve_model(DEEPSEEK_CONFIG, req.model)
        payload = self._build_payload(req, model_cfg)
        base = getattr(self._settings, "deepseek_base_url", None) or DEEPSEEK_CONFIG.base_url
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.post(
                    f"{base.rstrip('/')}/chat/completions",
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {api_key}",
                        "Content-Type": "application/json",
                    },
                )
        except UnicodeEncodeError as e:
            # 请求头只能是 ASCII，通常是 API Key 配置错误
            raise ValidationError(code="INVALID_REQUEST_HEADER", message=str(e), provider=self.name)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e), provider=self.name)
        if resp.status_code == 429:
            raise RateLimitError(code="RATE_LIMIT", message="DeepSeek rate limit", http_status=429)
        if resp.status_code >= 400:
            raise ApiError(code="API_ERROR", message=resp.text, http_status=resp.status_code)
        try:
            data = resp.json()
        except ValueError as e:
            raise ApiError(code="BAD_RESPONSE", message=f"invalid JSON body: {e}")
        return self._parse_response(data, req)

    # ---- 辅助方法 ----

    def _build_payload(self, req: ChatRequest, model_cfg: ModelConfig) -> dict:
        temperature = req.temperature
        if temperature is None:
            temperature = model_cfg.default_temperature
        return {
            "model": model_cfg.provider_model,
            "messages": [self._message_to_payload(m) for m in req.messages],
            "temperature": temperature,
            "max_tokens": req.max_tokens or model_cfg.max_tokens,
            "stream": False,
        }

    def _parse_response(self, data: Any, req: ChatRequest) -> ChatResult:
        """响应必须包含字符串类型的 choices[0].message.content。"""
        choices = data.get("choices") if isinstance(data, dict) else None
        first = choices[0] if isinstance(choices, list) and choices else None
        message = first.get("message") if isinstance(first, dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            raise ApiError(code="BAD_RESPONSE", message="response has no choices[0].message.content")
        usage_raw = data.get("usage")
        if not isinstance(usage_raw, dict):
            usage_raw = {}
        usage = ChatUsage(
            prompt_tokens=usage_raw.get("prompt_tokens", 0),
            completion_tokens=usage_raw.get("completion_tokens", 0),
            total_tokens=usage_raw.get("total_tokens", 0),
        )
        return ChatResult(
            provider=self.name,
            model=req.model,
            content=content,
            finish_reason=first.get("finish_reason"),
            usage=usage,
            raw=data,
        )

    @staticmethod
    def _message_to_payload(message: ChatMessage) -> Dict[str, Any]:
        return {"role": message.role, "content": message.content}
