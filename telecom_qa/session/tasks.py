"""异步边界的显式任务状态。

每次外部调用（对话补全、文件读取）都包在一个 BackgroundTask 里：
idle -> pending -> settled(ok|error)。任务一旦发出就运行到结束，没有取消。
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Literal, Optional

from telecom_qa.domain.exceptions import ValidationError


TaskState = Literal["idle", "pending", "ok", "error"]


@dataclass
class BackgroundTask:
    name: str
    state: TaskState = "idle"
    result: Any = None
    error: Optional[BaseException] = field(default=None, repr=False)

    @property
    def is_pending(self) -> bool:
        return self.state == "pending"

    @property
    def is_settled(self) -> bool:
        return self.state in ("ok", "error")

    def run(self, fn: Callable[[], Any]) -> Any:
        """执行 fn 并记录结果；异常在记录后继续向上抛出。"""
        if self.is_pending:
            raise ValidationError(code="TASK_BUSY", message=f"{self.name} is already running")
        self.state = "pending"
        self.result = None
        self.error = None
        try:
            value = fn()
        except Exception as e:
            self.state = "error"
            self.error = e
            raise
        self.state = "ok"
        self.result = value
        return value
