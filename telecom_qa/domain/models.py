"""统一的对话请求与结果数据模型。

- ChatMessage: 一条发给 Provider 或由 Provider 返回的消息。
- ChatRequest: 发给底层 LLM Provider 的完整请求。
- ChatResult: 从 Provider 解析后的统一响应结果。

Provider 适配器只依赖这些模型，并负责在厂商 JSON 与模型之间做转换。
会话持久化使用的 Turn / Conversation 见 conversation 模块。
"""

from dataclasses import dataclass
from typing import Literal, Optional, List


# 发给 Provider 的消息角色
Role = Literal["system", "user", "assistant"]


@dataclass
class ChatMessage:
    role: Role
    content: str


@dataclass
class ChatRequest:
    """一次完整的聊天请求（非流式）。"""

    provider: str  # 逻辑 Provider 名，如 "deepseek"
    model: str  # 逻辑模型名，如 "domain-chat"
    messages: List[ChatMessage]
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None


@dataclass
class ChatUsage:
    """Provider 返回的 token 统计信息。"""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class ChatResult:
    """一次对话调用的最终结果。

    - content: choices[0].message.content，解析阶段已保证为字符串。
    - raw: 原始响应 JSON，用于调试。
    """

    provider: str
    model: str
    content: str
    finish_reason: Optional[str] = None
    usage: Optional[ChatUsage] = None
    raw: Optional[dict] = None
