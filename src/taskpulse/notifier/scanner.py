"""DueDateScanner -- 到期通知扫描周期

一个周期的流程：
1. now / window_end = now + lookahead
2. 查询候选：now <= due_date <= window_end AND webhook_sent = false AND 未软删除
3. 逐个候选（有界并发）：
   - 无 webhook_url：告警跳过，不标记
   - 调用 WebhookGateway.deliver()
   - 成功：标记 webhook_sent 并持久化（先发送后持久化，崩溃时下个周期会重复通知）
   - 失败：不改变任何状态，下个周期继续尝试，直到离开窗口
4. 汇总为 ScanReport

周期不可重入：已有周期在运行时，新的请求直接返回 SKIPPED。
周期内的任何错误都不会传播到调用方。
"""

import asyncio
from datetime import UTC, datetime, timedelta

import structlog
from taskpulse.core.models import CycleOutcome, Task
from taskpulse.core.store.protocols import CandidateSource
from ulid import ULID

from .exceptions import CandidateQueryError
from .models import DeliveryResult, ScanReport
from .webhook import WebhookGateway

log = structlog.get_logger()


class DueDateScanner:
    """到期通知扫描器"""

    def __init__(
        self,
        task_store: CandidateSource,
        gateway: WebhookGateway,
        lookahead_s: int = 3600,
        concurrency: int = 4,
        max_cycle_s: float | None = None,
    ) -> None:
        """初始化扫描器

        Args:
            task_store: 候选查询与标记持久化接口
            gateway: webhook 投递网关
            lookahead_s: 到期窗口长度（秒）
            concurrency: 周期内并发投递数，1 为顺序处理
            max_cycle_s: 单个周期总时限，None 表示不限
        """
        self._store = task_store
        self._gateway = gateway
        self._lookahead = timedelta(seconds=lookahead_s)
        self._concurrency = max(1, concurrency)
        self._max_cycle_s = max_cycle_s
        self._cycle_lock = asyncio.Lock()
        self._last_report: ScanReport | None = None

    @property
    def is_running(self) -> bool:
        return self._cycle_lock.locked()

    @property
    def last_report(self) -> ScanReport | None:
        return self._last_report

    async def run_cycle(self, now: datetime | None = None) -> ScanReport:
        """执行一个扫描周期

        Args:
            now: 窗口起点，默认当前 UTC 时间（测试可注入）

        Returns:
            ScanReport；已有周期在运行时 outcome=SKIPPED
        """
        now = now or datetime.now(UTC)
        cycle_id = str(ULID())

        if self._cycle_lock.locked():
            log.info("scan_cycle_skipped", cycle_id=cycle_id, reason="previous_cycle_running")
            return ScanReport(
                cycle_id=cycle_id,
                outcome=CycleOutcome.SKIPPED,
                started_at=now,
                finished_at=now,
            )

        async with self._cycle_lock:
            with structlog.contextvars.bound_contextvars(cycle_id=cycle_id):
                report = await self._run_locked(cycle_id, now)
            self._last_report = report
            return report

    async def _run_locked(self, cycle_id: str, now: datetime) -> ScanReport:
        window_end = now + self._lookahead
        report = ScanReport(
            cycle_id=cycle_id,
            outcome=CycleOutcome.COMPLETED,
            started_at=now,
            window_start=now,
            window_end=window_end,
        )
        log.debug("scan_cycle_started", window_start=now, window_end=window_end)

        try:
            candidates = await self._load_candidates(now, window_end)
        except CandidateQueryError as e:
            log.error(
                "scan_cycle_aborted",
                error=str(e.original_error),
                error_type=type(e.original_error).__name__,
            )
            report.outcome = CycleOutcome.ABORTED
            report.error = str(e)
            report.finished_at = datetime.now(UTC)
            return report

        report.candidates = len(candidates)
        if not candidates:
            log.info("scan_cycle_no_candidates")
            report.finished_at = datetime.now(UTC)
            return report

        semaphore = asyncio.Semaphore(self._concurrency)

        async def _bounded(task: Task) -> None:
            async with semaphore:
                await self._process_task(task, report)

        pending = [asyncio.create_task(_bounded(task)) for task in candidates]
        try:
            async with asyncio.timeout(self._max_cycle_s):
                await asyncio.gather(*pending)
        except TimeoutError:
            for t in pending:
                t.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            # 被时限取消的投递计为失败，任务状态不变
            unfinished = sum(1 for t in pending if t.cancelled())
            report.failed += unfinished
            log.warning(
                "scan_cycle_deadline_exceeded",
                max_cycle_s=self._max_cycle_s,
                cancelled=unfinished,
            )

        report.finished_at = datetime.now(UTC)
        log.info(
            "scan_cycle_completed",
            candidates=report.candidates,
            delivered=report.delivered,
            failed=report.failed,
            skipped_no_url=report.skipped_no_url,
            persist_failed=report.persist_failed,
            superseded=report.superseded,
        )
        return report

    async def _load_candidates(self, now: datetime, window_end: datetime) -> list[Task]:
        try:
            return await self._store.find_candidates(
                due_after=now,
                due_before=window_end,
                webhook_sent=False,
            )
        except Exception as e:
            raise CandidateQueryError(e) from e

    async def _process_task(self, task: Task, report: ScanReport) -> None:
        """处理单个候选，任何异常都被隔离在本任务内"""
        if not task.has_webhook:
            log.warning("task_webhook_url_missing", task_id=task.task_id)
            report.skipped_no_url += 1
            return

        try:
            result = await self._gateway.deliver(task)
        except Exception as e:
            result = DeliveryResult(task_id=task.task_id, success=False, error=str(e))
            log.error(
                "webhook_delivery_error",
                task_id=task.task_id,
                error=str(e),
                error_type=type(e).__name__,
            )

        if not result.success:
            report.failed += 1
            return

        try:
            marked = await self._store.mark_webhook_sent(
                task.task_id,
                task.webhook_url,
                datetime.now(UTC),
            )
        except Exception as e:
            report.persist_failed += 1
            log.error(
                "webhook_sent_persist_failed",
                task_id=task.task_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return

        if marked:
            report.delivered += 1
            log.info("task_notified", task_id=task.task_id, title=task.title)
        else:
            # 投递期间 URL 被重新注册或移除，保持注册方写入的状态
            report.superseded += 1
            log.info("task_webhook_changed_during_delivery", task_id=task.task_id)
