"""bizsignal 异常体系

检测错误在变更处理器内被捕获并跳过；持久化错误对直接触发的调用方同步抛出；
生成错误把事件标记为 failed，并携带已成功生成的任务。
"""

from typing import Any


class BizSignalError(Exception):
    """bizsignal 基础异常"""

    def __init__(self, message: str, recoverable: bool = False) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 是否可通过重试恢复
        """
        super().__init__(message)
        self.recoverable = recoverable


class DetectionError(BizSignalError):
    """快照格式错误，或严重级别规则求值失败"""


class PersistenceError(BizSignalError):
    """存储写入/读取失败"""

    def __init__(self, operation: str, original_error: Exception) -> None:
        """
        Args:
            operation: 失败的存储操作名称
            original_error: 原始异常
        """
        super().__init__(f"{operation} failed: {original_error}", recoverable=True)
        self.operation = operation
        self.original_error = original_error


class AssignmentError(BizSignalError):
    """分配解析器无法给出负责人"""


class GenerationError(BizSignalError):
    """模板实例化失败

    tasks 保存同一事件下其他模板已成功生成的任务（不回滚）。
    failures 为 (template_id, 错误描述) 列表。
    """

    def __init__(
        self,
        message: str,
        tasks: list[Any] | None = None,
        failures: list[tuple[str, str]] | None = None,
    ) -> None:
        super().__init__(message)
        self.tasks = tasks or []
        self.failures = failures or []


class EventStatusConflictError(BizSignalError):
    """事件状态与预期不符（非法流转或并发更新）"""

    def __init__(self, event_id: str, current: str, target: str) -> None:
        super().__init__(f"Event {event_id} cannot transition from {current} to {target}")
        self.event_id = event_id
        self.current = current
        self.target = target


class EventNotFoundError(BizSignalError):
    def __init__(self, event_id: str) -> None:
        super().__init__(f"Event with id {event_id} does not exist")
        self.event_id = event_id


class TaskNotFoundError(BizSignalError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task with id {task_id} does not exist")
        self.task_id = task_id


class ChecklistItemNotFoundError(BizSignalError):
    def __init__(self, task_id: str, item_id: str) -> None:
        super().__init__(f"Checklist item {item_id} does not exist on task {task_id}")
        self.task_id = task_id
        self.item_id = item_id


class InvalidTaskTransitionError(BizSignalError):
    def __init__(self, task_id: str, current: str, target: str) -> None:
        super().__init__(f"Task {task_id} cannot transition from {current} to {target}")
        self.task_id = task_id
        self.current = current
        self.target = target


class UnknownModuleError(BizSignalError):
    def __init__(self, module_id: str) -> None:
        super().__init__(f"Unknown module: {module_id}")
        self.module_id = module_id
