"""数据模型 -- DeliveryResult + ScanReport

DeliveryResult 是网关对单次投递的显式结果；ScanReport 汇总一个扫描周期。
"""

from datetime import datetime

from pydantic import BaseModel, Field
from taskpulse.core.models import CycleOutcome


class DeliveryResult(BaseModel):
    """单次 webhook 投递结果

    网关不向调用方区分失败子类型（超时、网络错误、非 2xx 一律 success=False），
    error 仅用于日志诊断。
    """

    task_id: int = Field(description="任务 ID")
    success: bool = Field(description="是否收到 2xx 响应")
    status_code: int | None = Field(default=None, description="响应状态码，无响应时为 None")
    error: str = Field(default="", description="失败诊断信息")
    duration_ms: int = Field(default=0, ge=0, description="投递耗时（毫秒）")


class ScanReport(BaseModel):
    """扫描周期报告"""

    cycle_id: str = Field(description="周期 ID（ULID）")
    outcome: CycleOutcome = Field(description="周期结果")
    started_at: datetime = Field(description="周期开始时间（即窗口起点 now）")
    finished_at: datetime | None = Field(default=None, description="周期结束时间")
    window_start: datetime | None = Field(default=None, description="到期窗口起点")
    window_end: datetime | None = Field(default=None, description="到期窗口终点")

    candidates: int = Field(default=0, ge=0, description="候选任务数")
    delivered: int = Field(default=0, ge=0, description="投递成功并已标记的任务数")
    failed: int = Field(default=0, ge=0, description="投递失败的任务数（含超时与取消）")
    skipped_no_url: int = Field(default=0, ge=0, description="缺少 webhook_url 被跳过的任务数")
    persist_failed: int = Field(
        default=0,
        ge=0,
        description="投递成功但标记持久化失败的任务数（下个周期会重复通知）",
    )
    superseded: int = Field(
        default=0,
        ge=0,
        description="投递成功但期间 URL 被重新注册或移除，未标记的任务数",
    )

    error: str = Field(default="", description="周期级错误信息（ABORTED 时）")
