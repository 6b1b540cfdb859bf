"""领域层模型与协议。

包含：
- models: Provider 边界上的 ChatMessage / ChatRequest / ChatResult。
- conversation: Turn / Conversation 会话模型、标题推导与历史投影。
- exceptions: 业务异常类型定义。
"""
