"""枚举定义

包含 TaskStatus 状态枚举、切换顺序 STATUS_CYCLE，以及扫描周期结果 CycleOutcome。
"""

from enum import StrEnum


class TaskStatus(StrEnum):
    """Task 状态

    状态不参与通知资格判断：DONE 的任务只要到期窗口内未通知，仍会收到通知。
    """

    OPEN = "open"
    IN_PROGRESS = "in_progress"
    DONE = "done"


# toggle-status 的循环顺序：OPEN -> IN_PROGRESS -> DONE -> OPEN
STATUS_CYCLE: dict[TaskStatus, TaskStatus] = {
    TaskStatus.OPEN: TaskStatus.IN_PROGRESS,
    TaskStatus.IN_PROGRESS: TaskStatus.DONE,
    TaskStatus.DONE: TaskStatus.OPEN,
}


class CycleOutcome(StrEnum):
    """扫描周期结果"""

    COMPLETED = "COMPLETED"
    # 上一个周期仍在运行，本次直接跳过
    SKIPPED = "SKIPPED"
    # 候选查询失败，整个周期放弃，无任何副作用
    ABORTED = "ABORTED"


def next_status(current: TaskStatus) -> TaskStatus:
    """返回 toggle 之后的状态

    Args:
        current: 当前状态

    Returns:
        按 STATUS_CYCLE 循环得到的下一个状态
    """
    return STATUS_CYCLE[current]
