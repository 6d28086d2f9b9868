"""ScanScheduler -- 周期触发器

显式的 start()/stop() 生命周期，由应用 lifespan 持有。
tick 对齐到挂钟的间隔边界（默认 60 秒即整分钟）。
每个 tick 以独立的 asyncio task 触发扫描周期，慢周期不会推迟 tick 计算；
与仍在运行的周期重叠的 tick 由 DueDateScanner 的单飞保护直接跳过。
"""

import asyncio
import math
import time
from collections.abc import Callable

import structlog

from .scanner import DueDateScanner

log = structlog.get_logger()


def seconds_until_next_tick(interval_s: float, now_ts: float) -> float:
    """计算距下一个间隔边界的秒数

    恰好落在边界上时返回一个完整间隔，避免同一边界触发两次。
    """
    next_boundary = math.floor(now_ts / interval_s + 1) * interval_s
    return max(0.0, next_boundary - now_ts)


class ScanScheduler:
    """扫描调度器"""

    def __init__(
        self,
        scanner: DueDateScanner,
        interval_s: float = 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """初始化调度器

        Args:
            scanner: 扫描器
            interval_s: 扫描间隔（秒）
            clock: 挂钟函数，返回 Unix 时间戳（测试可注入）
        """
        self._scanner = scanner
        self._interval_s = interval_s
        self._clock = clock
        self._loop_task: asyncio.Task | None = None
        self._cycle_tasks: set[asyncio.Task] = set()
        self._tick_count = 0

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def tick_count(self) -> int:
        return self._tick_count

    def start(self) -> None:
        """启动调度循环（重复调用无副作用）"""
        if self.is_running:
            return
        self._loop_task = asyncio.create_task(self._run_loop(), name="taskpulse-scan-scheduler")
        log.info("scan_scheduler_started", interval_s=self._interval_s)

    async def stop(self) -> None:
        """停止调度循环并取消仍在运行的周期

        被取消的周期中尚未完成的投递视为失败，任务状态保持不变。
        """
        if self._loop_task is not None:
            self._loop_task.cancel()
            await asyncio.gather(self._loop_task, return_exceptions=True)
            self._loop_task = None

        cycles = list(self._cycle_tasks)
        for task in cycles:
            task.cancel()
        if cycles:
            await asyncio.gather(*cycles, return_exceptions=True)
        self._cycle_tasks.clear()
        log.info("scan_scheduler_stopped", ticks=self._tick_count)

    async def _run_loop(self) -> None:
        while True:
            delay = seconds_until_next_tick(self._interval_s, self._clock())
            await asyncio.sleep(delay)
            self._fire()

    def _fire(self) -> None:
        self._tick_count += 1
        task = asyncio.create_task(self._run_tick())
        self._cycle_tasks.add(task)
        task.add_done_callback(self._cycle_tasks.discard)

    async def _run_tick(self) -> None:
        try:
            await self._scanner.run_cycle()
        except Exception as e:
            # run_cycle 本身不应抛出；兜底记录，调度循环继续
            log.error(
                "scan_tick_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
