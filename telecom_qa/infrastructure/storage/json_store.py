import json
import logging
from typing import Any, Dict, List, Optional

from telecom_qa.config.settings import settings
from telecom_qa.domain.conversation import (
    Conversation,
    HistoryEntry,
    Turn,
    derive_title,
    from_iso,
    to_history_entry,
    to_iso,
)
from telecom_qa.domain.exceptions import PersistenceError, StorageQuotaError, ValidationError
from telecom_qa.infrastructure.logging.logger import logger
from telecom_qa.infrastructure.storage.slot import FileSlot, StorageSlot


# 存储中助手角色沿用旧前端的 "bot"
_ROLE_TO_WIRE = {"user": "user", "assistant": "bot"}
_ROLE_FROM_WIRE = {"user": "user", "bot": "assistant", "assistant": "assistant"}


class JsonConversationStore:
    """容量受限的会话集合，整体序列化为 JSON 数组写入一个存储槽。

    顺序即展示顺序：新会话插入到最前面，已有会话原地更新（不前移）。
    超出容量时丢弃末尾一条，因此淘汰的是位置最靠后的会话，
    而不一定是时间最早的会话。
    """

    def __init__(self, slot: Optional[StorageSlot] = None, capacity: Optional[int] = None):
        self._slot = slot or FileSlot(
            root=settings.storage_root,
            key=settings.history_slot_key,
            quota_bytes=settings.storage_quota_bytes,
        )
        self.capacity = capacity if capacity is not None else settings.history_capacity
        self._items: List[Conversation] = []

    # ---- 读 ----

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, conversation_id: object) -> bool:
        return any(c.id == conversation_id for c in self._items)

    def find(self, conversation_id: str) -> Optional[Conversation]:
        for conv in self._items:
            if conv.id == conversation_id:
                return conv
        return None

    def ids(self) -> List[str]:
        return [c.id for c in self._items]

    def snapshot(self) -> List[Conversation]:
        return list(self._items)

    def entries(self) -> List[HistoryEntry]:
        return [to_history_entry(c) for c in self._items]

    # ---- 写 ----

    def upsert(self, conversation: Conversation) -> None:
        if not conversation.turns:
            raise ValidationError(code="EMPTY_CONVERSATION", message=conversation.id)
        record = Conversation(
            id=conversation.id,
            title=conversation.title,
            turns=list(conversation.turns),
            updated_at=conversation.updated_at,
        )
        for idx, existing in enumerate(self._items):
            if existing.id == record.id:
                self._items[idx] = record
                break
        else:
            self._items.insert(0, record)
        while len(self._items) > self.capacity:
            evicted = self._items.pop()
            self._log(logging.INFO, "Evicted conversation over capacity", conversation_id=evicted.id)

    def delete(self, conversation_id: str) -> Optional[Conversation]:
        for idx, conv in enumerate(self._items):
            if conv.id == conversation_id:
                return self._items.pop(idx)
        return None

    def persist(self) -> bool:
        """把全部会话写入存储槽。

        配额不足时淘汰末尾会话并重试，直到成功或集合为空；
        任何持久化失败都只记录日志，不向外抛出。
        """
        while True:
            payload = json.dumps([self._to_record(c) for c in self._items], ensure_ascii=False)
            try:
                self._slot.write(payload)
                return True
            except StorageQuotaError as e:
                if not self._items:
                    self._log(logging.ERROR, "Storage quota exceeded with empty history, giving up", error=e.message)
                    return False
                evicted = self._items.pop()
                self._log(
                    logging.WARNING,
                    "Storage quota exceeded, evicted oldest conversation",
                    conversation_id=evicted.id,
                    remaining=len(self._items),
                )
            except PersistenceError as e:
                self._log(logging.ERROR, "Failed to persist history", code=e.code, error=e.message)
                return False

    def load(self) -> None:
        try:
            raw = self._slot.read()
        except PersistenceError as e:
            self._log(logging.WARNING, "Failed to read history, starting empty", code=e.code, error=e.message)
            self._items = []
            return
        if raw is None:
            self._items = []
            return
        try:
            data = json.loads(raw)
            if not isinstance(data, list):
                raise ValueError("history root is not a list")
            items: List[Conversation] = []
            seen: set[str] = set()
            for entry in data:
                conv = self._from_record(entry)
                if conv is None or conv.id in seen:
                    continue
                seen.add(conv.id)
                items.append(conv)
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            self._log(logging.WARNING, "Failed to parse history, starting empty", error=str(e))
            self._items = []
            return
        if len(items) > self.capacity:
            items = items[: self.capacity]
        self._items = items

    # ---- 序列化 ----

    def _to_record(self, conv: Conversation) -> Dict[str, Any]:
        return {
            "id": conv.id,
            "title": conv.title,
            "messages": [
                {
                    "role": _ROLE_TO_WIRE[t.role],
                    "content": t.content,
                    "timestamp": to_iso(t.timestamp),
                }
                for t in conv.turns
            ],
            "timestamp": to_iso(conv.updated_at),
        }

    def _from_record(self, data: Dict[str, Any]) -> Optional[Conversation]:
        if "messages" not in data and "question" in data:
            return self._from_legacy_record(data)
        turns = [
            Turn(
                role=_ROLE_FROM_WIRE[m["role"]],
                content=str(m.get("content") or ""),
                timestamp=from_iso(m["timestamp"]),
            )
            for m in data["messages"]
        ]
        if not turns:
            return None
        return Conversation(
            id=str(data["id"]),
            title=derive_title(turns),
            turns=turns,
            updated_at=from_iso(data["timestamp"]),
        )

    def _from_legacy_record(self, data: Dict[str, Any]) -> Conversation:
        """旧版前端只保存一问一答：{id, question, answer, timestamp}。"""
        ts = from_iso(data["timestamp"])
        turns = [Turn(role="user", content=str(data["question"]), timestamp=ts)]
        if data.get("answer") is not None:
            turns.append(Turn(role="assistant", content=str(data["answer"]), timestamp=ts))
        return Conversation(id=str(data["id"]), title=derive_title(turns), turns=turns, updated_at=ts)

    def _log(self, level: int, message: str, **extra: Any) -> None:
        logger.log(level, message, extra={"extra": {"slot": self._slot.key, **extra}})
