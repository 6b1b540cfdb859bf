from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Literal, Optional, Protocol


TurnRole = Literal["user", "assistant"]

UNTITLED = "untitled"
DISPLAY_TITLE_LIMIT = 50


@dataclass(frozen=True)
class Turn:
    role: TurnRole
    content: str
    timestamp: datetime


@dataclass
class Conversation:
    id: str
    title: str
    turns: List[Turn] = field(default_factory=list)
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class HistoryEntry:
    """历史列表中一项的只读投影。"""

    id: str
    title: str
    preview: str
    turn_count: int
    timestamp: datetime


def derive_title(turns: List[Turn]) -> str:
    """标题取第一条用户消息的完整内容，没有用户消息时返回占位符。"""
    first = first_user_content(turns)
    return first if first is not None else UNTITLED


def first_user_content(turns: List[Turn]) -> Optional[str]:
    for turn in turns:
        if turn.role == "user":
            return turn.content
    return None


def display_title(title: str, limit: int = DISPLAY_TITLE_LIMIT) -> str:
    """仅在展示时截断标题，存储中的标题保持完整。"""
    if len(title) > limit:
        return title[:limit] + "..."
    return title


def to_history_entry(conv: Conversation) -> HistoryEntry:
    return HistoryEntry(
        id=conv.id,
        title=display_title(conv.title),
        preview=first_user_content(conv.turns) or "",
        turn_count=len(conv.turns),
        timestamp=conv.updated_at,
    )


def to_iso(ts: datetime) -> str:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def from_iso(value: str) -> datetime:
    ts = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


class ConversationRepository(Protocol):
    capacity: int

    def upsert(self, conversation: Conversation) -> None:
        ...

    def find(self, conversation_id: str) -> Optional[Conversation]:
        ...

    def delete(self, conversation_id: str) -> Optional[Conversation]:
        ...

    def persist(self) -> bool:
        ...

    def load(self) -> None:
        ...

    def snapshot(self) -> List[Conversation]:
        ...

    def __contains__(self, conversation_id: object) -> bool:
        ...
