"""Provider 抽象接口。

上层服务不直接依赖具体厂商的 HTTP 接口，而是依赖此协议：
每个厂商实现一个 ProviderClient，负责把 ChatRequest 转成具体 API 请求，
并把响应 JSON 解析为 ChatResult。
"""

from typing import Protocol

from telecom_qa.domain.models import ChatRequest, ChatResult


class ProviderClient(Protocol):
    """LLM Provider 客户端协议。

    - name: Provider 名称，用于日志。
    - chat(req): 执行一次非流式对话调用，返回统一的 ChatResult。
    """

    name: str

    def chat(self, req: ChatRequest) -> ChatResult:
        ...
