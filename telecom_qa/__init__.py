"""通信领域智能问答系统核心包。

提供会话持久化（容量受限的历史记录）、当前会话控制、
助手回复格式化，以及对接远程补全服务的 ChatService。
"""

from telecom_qa.api.service import ChatService, Reply, get_default_service

__all__ = ["ChatService", "Reply", "get_default_service"]
