"""对外 API 服务模块。

ChatService 把会话控制器、会话仓库与 Provider 组合起来，
提供发送消息、知识延展、知识图谱、上传与历史记录管理等操作。

所有失败都在这里降级：空输入静默忽略，其余失败转为一条助手消息，
不会以异常形式抛给调用方，会话状态在失败后仍然可用。
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Protocol

import pydantic
from pydantic import BaseModel, ConfigDict

from telecom_qa.config.settings import settings
from telecom_qa.domain.conversation import HistoryEntry, TurnRole
from telecom_qa.domain.exceptions import ApiError, BusinessError, ValidationError
from telecom_qa.domain.models import ChatMessage, ChatRequest, ChatResult
from telecom_qa.formatting import Block, format_message, render_html
from telecom_qa.infrastructure.logging.logger import logger
from telecom_qa.infrastructure.storage.json_store import JsonConversationStore
from telecom_qa.prompts import DATA_SOURCE_PREFIXES, load_prompt
from telecom_qa.providers import create_provider
from telecom_qa.providers.base import ProviderClient
from telecom_qa.session.controller import SessionController
from telecom_qa.session.tasks import BackgroundTask
from telecom_qa.session.uploads import UploadKind, describe_file, read_image


LOCAL_NO_UPLOADS = '您选择了"仅本地上传数据"但尚未上传任何文件，请上传文件后再试。'
LOCAL_UNAVAILABLE = "本地数据回答功能需要后端API支持。当前演示环境无法直接实现此功能。"
NO_VALID_ANSWER = "出错了，未能获取有效回答。"
REQUEST_FAILED = "出错了，请稍后再试。"
EXPAND_NO_ANSWER = "知识延展失败，请稍后再试。"
GRAPH_PARSE_FAILED = "知识图谱生成失败，格式解析错误"
GRAPH_NO_DATA = "知识图谱生成失败，未获取有效数据"
GRAPH_BAD_SHAPE = "获取的知识图谱数据格式不正确"


@dataclass
class Reply:
    """一条要展示的消息。assistant 消息附带格式化后的展示块。"""

    role: TurnRole
    content: str
    ok: bool = True
    blocks: List[Block] = field(init=False)

    def __post_init__(self) -> None:
        self.blocks = format_message(self.content) if self.role == "assistant" else []

    @property
    def html(self) -> str:
        return render_html(self.blocks)


class GraphNode(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    name: str
    category: str = ""


class GraphLink(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    source: str
    target: str
    relation: str = ""


class KnowledgeGraph(BaseModel):
    nodes: List[GraphNode]
    links: List[GraphLink]

    def node_name(self, node_id: str) -> str:
        for node in self.nodes:
            if node.id == node_id:
                return node.name
        return node_id


@dataclass
class GraphResult:
    graph: Optional[KnowledgeGraph] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.graph is not None


class LocalQueryBackend(Protocol):
    """基于本地上传数据回答问题的后端接口。

    只接收文件名列表，上传的二进制内容不会离开本地。
    失败时应抛出 BusinessError。
    """

    def answer(self, question: str, files: List[str], images: List[str]) -> str:
        ...


class ChatService:
    def __init__(
        self,
        store: JsonConversationStore,
        provider_client: ProviderClient,
        local_backend: Optional[LocalQueryBackend] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
    ):
        self._store = store
        self._provider = provider_client
        self._local_backend = local_backend
        self._model = model or getattr(settings, "default_model", "domain-chat")
        self._temperature = temperature if temperature is not None else getattr(settings, "temperature", None)
        self._controller = SessionController(store)
        self._expand_task = BackgroundTask("expand")
        self.last_send_task: Optional[BackgroundTask] = None

    @property
    def controller(self) -> SessionController:
        return self._controller

    @property
    def expand_task(self) -> BackgroundTask:
        return self._expand_task

    # ---- 对话 ----

    def send_message(self, text: Optional[str], data_source: str = "deepseek") -> Optional[Reply]:
        """发送一条用户消息并返回助手回复；空输入返回 None。

        发送路径没有忙碌保护，连续发送时回复按完成顺序追加。
        """
        message = (text or "").strip()
        if not message:
            return None
        self._controller.append_turn("user", message)

        if data_source == "local":
            uploads = self._controller.uploads
            if uploads.is_empty():
                return self._reply(LOCAL_NO_UPLOADS, ok=False)
            return self._answer_locally(message)

        prompt = DATA_SOURCE_PREFIXES.get(data_source, "") + message
        req = self._request(load_prompt("chat_system"), prompt)
        task = BackgroundTask("send")
        self.last_send_task = task
        try:
            result: ChatResult = task.run(lambda: self._provider.chat(req))
        except BusinessError as e:
            self._log(logging.ERROR, "Chat request failed", code=e.code, error=e.message, data_source=data_source)
            if isinstance(e, ApiError) and e.code == "BAD_RESPONSE":
                return self._reply(NO_VALID_ANSWER, ok=False)
            return self._reply(REQUEST_FAILED, ok=False)
        return self._reply(result.content)

    def expand_knowledge(self) -> Optional[Reply]:
        """基于最近一条助手回答做知识延展；已有延展请求未完成时拒绝。"""
        answer = self._controller.last_assistant_content()
        if answer is None:
            return None
        if self._expand_task.is_pending:
            self._log(logging.INFO, "Expand request rejected while another is pending")
            return None
        req = self._request(load_prompt("expand_system"), load_prompt("expand_user", answer=answer))
        try:
            result: ChatResult = self._expand_task.run(lambda: self._provider.chat(req))
        except BusinessError as e:
            self._log(logging.ERROR, "Expand request failed", code=e.code, error=e.message)
            if isinstance(e, ApiError) and e.code == "BAD_RESPONSE":
                return self._reply(EXPAND_NO_ANSWER, ok=False)
            return self._reply(f"知识延展失败: {e.message}", ok=False)
        return self._reply(result.content)

    def generate_knowledge_graph(self) -> GraphResult:
        """从最近一条助手回答中提取知识图谱，不修改会话。"""
        answer = self._controller.last_assistant_content()
        if answer is None:
            return GraphResult(error=GRAPH_NO_DATA)
        req = self._request(load_prompt("graph_system"), load_prompt("graph_user", answer=answer))
        try:
            result: ChatResult = BackgroundTask("graph").run(lambda: self._provider.chat(req))
        except BusinessError as e:
            self._log(logging.ERROR, "Graph request failed", code=e.code, error=e.message)
            if isinstance(e, ApiError) and e.code == "BAD_RESPONSE":
                return GraphResult(error=GRAPH_NO_DATA)
            return GraphResult(error=f"知识图谱生成失败: {e.message}")
        try:
            data = json.loads(_strip_code_fence(result.content))
        except json.JSONDecodeError as e:
            self._log(logging.WARNING, "Graph payload is not JSON", error=str(e))
            return GraphResult(error=GRAPH_PARSE_FAILED)
        try:
            graph = KnowledgeGraph.model_validate(data)
        except pydantic.ValidationError as e:
            self._log(logging.WARNING, "Graph payload has wrong shape", error=str(e))
            return GraphResult(error=GRAPH_BAD_SHAPE)
        return GraphResult(graph=graph)

    # ---- 上传 ----

    def upload_files(self, paths: Iterable[str]) -> Optional[str]:
        return self._upload("file", list(paths))

    def upload_images(self, paths: Iterable[str]) -> Optional[str]:
        return self._upload("image", list(paths))

    def remove_upload(self, kind: UploadKind, index: int) -> Optional[str]:
        try:
            self._controller.uploads.remove(kind, index)
        except ValidationError as e:
            self._log(logging.WARNING, "Remove upload failed", code=e.code, error=e.message)
            return None
        return f"已移除{_kind_label(kind)}"

    # ---- 历史记录 ----

    def history(self) -> List[HistoryEntry]:
        return self._store.entries()

    def new_conversation(self) -> str:
        return self._controller.start_new()

    def load_conversation(self, conversation_id: str) -> List[Reply]:
        """载入历史会话为当前会话，返回要重新展示的消息；找不到时返回空列表。"""
        if not self._controller.load_conversation(conversation_id):
            return []
        return [Reply(role=t.role, content=t.content) for t in self._controller.turns]

    def delete_conversation(self, conversation_id: str) -> bool:
        """删除历史会话；删除的是当前会话时重新开始一个新会话。"""
        removed = self._store.delete(conversation_id)
        if removed is None:
            return False
        self._store.persist()
        self._log(logging.INFO, "Deleted conversation", deleted_id=conversation_id)
        if conversation_id == self._controller.current_id:
            self._controller.start_new()
        return True

    # ---- 辅助方法 ----

    def _answer_locally(self, question: str) -> Reply:
        uploads = self._controller.uploads
        if self._local_backend is None:
            # 本地数据问答尚无后端实现，上传内容不会被发送到远程补全服务
            self._log(
                logging.INFO,
                "Local query backend not configured",
                files=uploads.names("file"),
                images=uploads.names("image"),
            )
            return self._reply(LOCAL_UNAVAILABLE, ok=False)
        backend = self._local_backend
        try:
            answer = BackgroundTask("local-query").run(
                lambda: backend.answer(question, uploads.names("file"), uploads.names("image"))
            )
        except BusinessError as e:
            self._log(logging.ERROR, "Local query failed", code=e.code, error=e.message)
            return self._reply(REQUEST_FAILED, ok=False)
        return self._reply(answer)

    def _upload(self, kind: UploadKind, paths: List[str]) -> Optional[str]:
        if not paths:
            return None
        tray = self._controller.uploads
        remaining = tray.remaining(kind)
        label = _kind_label(kind)
        if remaining <= 0:
            return f"最多只能上传{tray.limit}个{label}"
        selected = paths[:remaining]
        reader = describe_file if kind == "file" else read_image
        try:
            items = BackgroundTask(f"upload-{kind}").run(lambda: [reader(p) for p in selected])
        except BusinessError as e:
            self._log(logging.ERROR, "Upload failed", code=e.code, error=e.message)
            return f"{label}上传失败: {e.message}"
        accepted = tray.add(kind, items)
        names = "\n".join(u.name for u in accepted)
        return f"已成功上传{len(accepted)}个{label}:\n{names}"

    def _request(self, system_prompt: str, user_prompt: str) -> ChatRequest:
        return ChatRequest(
            provider=self._provider.name,
            model=self._model,
            messages=[
                ChatMessage(role="system", content=system_prompt),
                ChatMessage(role="user", content=user_prompt),
            ],
            temperature=self._temperature,
        )

    def _reply(self, content: str, ok: bool = True) -> Reply:
        self._controller.append_turn("assistant", content)
        self._controller.commit()
        return Reply(role="assistant", content=content, ok=ok)

    def _log(self, level: int, message: str, **extra: Any) -> None:
        payload: Dict[str, Any] = {"conversation_id": self._controller.current_id, **extra}
        logger.log(level, message, extra={"extra": payload})


def _kind_label(kind: UploadKind) -> str:
    return "文件" if kind == "file" else "图片"


def _strip_code_fence(text: str) -> str:
    s = text.strip()
    if s.startswith("```"):
        s = s.split("\n", 1)[1] if "\n" in s else ""
        if s.rstrip().endswith("```"):
            s = s.rstrip()[:-3]
    return s.strip()


_service: Optional[ChatService] = None


def get_default_service() -> ChatService:
    """获取默认的 ChatService 实例（单例），启动时从存储槽载入历史。"""
    global _service
    if _service is None:
        store = JsonConversationStore()
        store.load()
        _service = ChatService(store=store, provider_client=create_provider())
    return _service
