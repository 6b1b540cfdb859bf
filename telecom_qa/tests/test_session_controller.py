from datetime import datetime, timezone

import pytest

from telecom_qa.domain.conversation import Conversation, Turn
from telecom_qa.domain.exceptions import ValidationError
from telecom_qa.infrastructure.storage.json_store import JsonConversationStore
from telecom_qa.infrastructure.storage.slot import FileSlot
from telecom_qa.session import controller as controller_module
from telecom_qa.session.controller import SessionController
from telecom_qa.session.uploads import UploadedFile


def make_store(tmp_path):
    return JsonConversationStore(slot=FileSlot(tmp_path, "chatHistory", 1024 * 1024), capacity=20)


def test_start_new_issues_fresh_increasing_ids(tmp_path):
    ctrl = SessionController(make_store(tmp_path))
    first = ctrl.current_id
    second = ctrl.start_new()
    third = ctrl.start_new()
    assert len({first, second, third}) == 3
    assert int(first[len("hist-"):]) < int(second[len("hist-"):]) < int(third[len("hist-"):])


def test_start_new_skips_ids_already_in_store(tmp_path, monkeypatch):
    store = make_store(tmp_path)
    now = datetime.now(timezone.utc)
    for cid in ("hist-1000", "hist-1001"):
        store.upsert(Conversation(id=cid, title="t", turns=[Turn(role="user", content="t", timestamp=now)]))
    monkeypatch.setattr(controller_module.time, "time_ns", lambda: 1000)
    ctrl = SessionController(store)
    assert ctrl.current_id == "hist-1002"
    assert ctrl.start_new() == "hist-1003"


def test_start_new_clears_turns_and_uploads(tmp_path):
    ctrl = SessionController(make_store(tmp_path))
    ctrl.append_turn("user", "hello")
    ctrl.uploads.add("file", [UploadedFile(name="rfc.pdf", size=10, type="application/pdf")])
    ctrl.start_new()
    assert ctrl.turns == []
    assert ctrl.uploads.is_empty()


def test_append_turn_keeps_order_and_does_not_persist(tmp_path):
    store = make_store(tmp_path)
    ctrl = SessionController(store)
    ctrl.append_turn("user", "a")
    ctrl.append_turn("assistant", "b")
    ctrl.append_turn("user", "a")
    assert [(t.role, t.content) for t in ctrl.turns] == [("user", "a"), ("assistant", "b"), ("user", "a")]
    assert len(store) == 0
    assert not (tmp_path / "chatHistory.json").exists()


def test_commit_empty_session_is_noop(tmp_path):
    store = make_store(tmp_path)
    ctrl = SessionController(store)
    assert ctrl.commit() is None
    assert len(store) == 0


def test_commit_derives_title_from_first_user_turn(tmp_path):
    store = make_store(tmp_path)
    ctrl = SessionController(store)
    ctrl.append_turn("assistant", "欢迎")
    ctrl.append_turn("user", "what is 5G")
    ctrl.append_turn("assistant", "fifth generation")
    ctrl.append_turn("user", "and 6G?")
    ctrl.commit()
    assert store.find(ctrl.current_id).title == "what is 5G"


def test_title_placeholder_without_user_turn(tmp_path):
    ctrl = SessionController(make_store(tmp_path))
    assert ctrl.get_title() == "untitled"
    ctrl.append_turn("assistant", "only me")
    assert ctrl.get_title() == "untitled"


def test_commit_stores_snapshot_not_live_list(tmp_path):
    store = make_store(tmp_path)
    ctrl = SessionController(store)
    ctrl.append_turn("user", "q1")
    ctrl.append_turn("assistant", "a1")
    ctrl.commit()
    ctrl.append_turn("user", "q2")
    assert len(store.find(ctrl.current_id).turns) == 2

    ctrl.commit()
    assert len(store.find(ctrl.current_id).turns) == 3
    assert len(store) == 1


def test_commit_persists_store(tmp_path):
    store = make_store(tmp_path)
    ctrl = SessionController(store)
    ctrl.append_turn("user", "q")
    ctrl.commit()

    reloaded = make_store(tmp_path)
    reloaded.load()
    assert reloaded.ids() == [ctrl.current_id]


def test_load_conversation_replaces_id_and_turns_only(tmp_path):
    store = make_store(tmp_path)
    ctrl = SessionController(store)
    ctrl.append_turn("user", "old question")
    ctrl.append_turn("assistant", "old answer")
    ctrl.commit()
    old_id = ctrl.current_id

    ctrl.start_new()
    ctrl.uploads.add("image", [UploadedFile(name="a.png", size=1, type="image/png")])
    assert ctrl.load_conversation(old_id) is True
    assert ctrl.current_id == old_id
    assert [t.content for t in ctrl.turns] == ["old question", "old answer"]
    assert ctrl.uploads.names("image") == ["a.png"]

    ctrl.append_turn("user", "follow up")
    assert len(store.find(old_id).turns) == 2


def test_load_unknown_conversation_keeps_draft(tmp_path):
    ctrl = SessionController(make_store(tmp_path))
    ctrl.append_turn("user", "draft")
    current = ctrl.current_id
    assert ctrl.load_conversation("missing") is False
    assert ctrl.current_id == current
    assert len(ctrl.turns) == 1


def test_last_assistant_content(tmp_path):
    ctrl = SessionController(make_store(tmp_path))
    assert ctrl.last_assistant_content() is None
    ctrl.append_turn("user", "q")
    ctrl.append_turn("assistant", "a1")
    ctrl.append_turn("user", "q2")
    assert ctrl.last_assistant_content() == "a1"


def test_explicit_zero_upload_limit_is_respected(tmp_path):
    ctrl = SessionController(make_store(tmp_path), uploads_limit=0)
    with pytest.raises(ValidationError) as exc:
        ctrl.uploads.add("file", [UploadedFile(name="rfc.pdf", size=10, type="application/pdf")])
    assert exc.value.code == "UPLOAD_LIMIT"
    ctrl.start_new()
    assert ctrl.uploads.limit == 0
