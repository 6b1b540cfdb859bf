"""当前会话控制器。

SessionController 独占一份进行中的会话草稿（SessionState），
追加消息、推导标题，并在提交时把草稿的快照写入注入的会话仓库。
提交之后仓库是该会话的唯一持有者，控制器只会重新生成快照再次提交。
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional

from telecom_qa.config.settings import settings
from telecom_qa.domain.conversation import (
    Conversation,
    ConversationRepository,
    Turn,
    TurnRole,
    derive_title,
)
from telecom_qa.infrastructure.logging.logger import logger
from telecom_qa.session.uploads import UploadTray


ID_PREFIX = "hist-"


@dataclass
class SessionState:
    conversation_id: str
    turns: List[Turn] = field(default_factory=list)
    uploads: UploadTray = field(default_factory=lambda: UploadTray(settings.max_uploads))


class SessionController:
    def __init__(self, store: ConversationRepository, uploads_limit: Optional[int] = None):
        self._store = store
        self._uploads_limit = uploads_limit if uploads_limit is not None else settings.max_uploads
        self._last_id_ns = 0
        self._state = SessionState(
            conversation_id=self._next_id(),
            uploads=UploadTray(self._uploads_limit),
        )

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def current_id(self) -> str:
        return self._state.conversation_id

    @property
    def turns(self) -> List[Turn]:
        return list(self._state.turns)

    @property
    def uploads(self) -> UploadTray:
        return self._state.uploads

    def start_new(self) -> str:
        """开始新会话：分配新 id，清空消息与上传。"""
        self._state.conversation_id = self._next_id()
        self._state.turns = []
        self._state.uploads.clear()
        self._log(logging.INFO, "Started new conversation")
        return self._state.conversation_id

    def append_turn(self, role: TurnRole, content: str) -> Turn:
        turn = Turn(role=role, content=content, timestamp=datetime.now(timezone.utc))
        self._state.turns.append(turn)
        return turn

    def get_title(self) -> str:
        return derive_title(self._state.turns)

    def commit(self) -> Optional[Conversation]:
        """把当前草稿的快照写入仓库并持久化；没有消息时什么也不做。"""
        if not self._state.turns:
            return None
        snapshot = Conversation(
            id=self._state.conversation_id,
            title=self.get_title(),
            turns=list(self._state.turns),
            updated_at=datetime.now(timezone.utc),
        )
        self._store.upsert(snapshot)
        self._store.persist()
        self._log(logging.INFO, "Committed conversation", turns=len(snapshot.turns))
        return snapshot

    def load_conversation(self, conversation_id: str) -> bool:
        """把已提交的会话载入为当前草稿，继续在其上追加消息。

        只替换 id 与消息列表，上传内容等其他状态保持不变。
        """
        conv = self._store.find(conversation_id)
        if conv is None:
            return False
        self._state.conversation_id = conv.id
        self._state.turns = list(conv.turns)
        self._log(logging.INFO, "Loaded conversation", turns=len(conv.turns))
        return True

    def last_assistant_content(self) -> Optional[str]:
        for turn in reversed(self._state.turns):
            if turn.role == "assistant":
                return turn.content
        return None

    def _next_id(self) -> str:
        # 基于纳秒时间戳单调递增，并跳过仓库中已存在的 id
        candidate = max(time.time_ns(), self._last_id_ns + 1)
        while f"{ID_PREFIX}{candidate}" in self._store:
            candidate += 1
        self._last_id_ns = candidate
        return f"{ID_PREFIX}{candidate}"

    def _log(self, level: int, message: str, **extra: Any) -> None:
        logger.log(level, message, extra={"extra": {"conversation_id": self._state.conversation_id, **extra}})
