"""DueDateScanner 单元测试

测试内容：
1. 窗口内未通知任务投递一次并标记，后续周期不再投递
2. 窗口外（远期、已过期）任务从不投递
3. 单个任务失败不影响其他任务，失败任务下个周期重试
4. 无 webhook_url 的候选告警跳过
5. 候选查询失败放弃整个周期
6. 周期不可重入
7. 标记持久化失败、投递期间 URL 被替换
8. 周期总时限
"""

import asyncio
from datetime import timedelta

import httpx
from taskpulse.core.models import CycleOutcome, TaskStatus
from taskpulse.notifier.scanner import DueDateScanner
from taskpulse.notifier.webhook import WebhookGateway

HOOK_URL = "https://hooks.example.com/task-due"
OTHER_URL = "https://hooks.example.com/other"


class FailingQueryStore:
    """候选查询总是失败的存储"""

    def __init__(self) -> None:
        self.marked: list[int] = []

    async def find_candidates(self, due_after, due_before, webhook_sent=False):
        raise RuntimeError("database is locked")

    async def mark_webhook_sent(self, task_id, webhook_url, updated_at):
        self.marked.append(task_id)
        return True


class FailingMarkStore:
    """查询正常、标记失败的存储包装"""

    def __init__(self, inner) -> None:
        self._inner = inner

    async def find_candidates(self, due_after, due_before, webhook_sent=False):
        return await self._inner.find_candidates(due_after, due_before, webhook_sent)

    async def mark_webhook_sent(self, task_id, webhook_url, updated_at):
        raise RuntimeError("disk I/O error")


class ExplodingGateway:
    """对指定任务抛出异常的网关，其余委托给真实网关"""

    def __init__(self, inner: WebhookGateway, explode_for: int) -> None:
        self._inner = inner
        self._explode_for = explode_for

    async def deliver(self, task):
        if task.task_id == self._explode_for:
            raise RuntimeError("unexpected")
        return await self._inner.deliver(task)


def _blocking_gateway(started: asyncio.Event, release: asyncio.Event) -> WebhookGateway:
    async def handler(request: httpx.Request) -> httpx.Response:
        started.set()
        await release.wait()
        return httpx.Response(200)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return WebhookGateway(timeout_s=5.0, client=client)


class TestDelivery:
    async def test_due_task_is_notified_and_marked(
        self, task_store, add_task, gateway, webhook_endpoint, scan_now
    ):
        task = await add_task(due_in=timedelta(minutes=30))
        scanner = DueDateScanner(task_store, gateway)

        report = await scanner.run_cycle(now=scan_now)

        assert report.outcome == CycleOutcome.COMPLETED
        assert report.candidates == 1
        assert report.delivered == 1
        assert report.failed == 0
        assert webhook_endpoint.calls_to(HOOK_URL) == 1
        assert (await task_store.get_task(task.task_id)).webhook_sent is True

    async def test_notified_only_once(
        self, task_store, add_task, gateway, webhook_endpoint, scan_now
    ):
        await add_task(due_in=timedelta(minutes=50))
        scanner = DueDateScanner(task_store, gateway)

        await scanner.run_cycle(now=scan_now)
        second = await scanner.run_cycle(now=scan_now + timedelta(minutes=1))
        third = await scanner.run_cycle(now=scan_now + timedelta(minutes=2))

        assert second.candidates == 0
        assert third.candidates == 0
        assert len(webhook_endpoint.requests) == 1

    async def test_far_future_task_not_notified(
        self, task_store, add_task, gateway, webhook_endpoint, scan_now
    ):
        task = await add_task(due_in=timedelta(hours=2))
        report = await DueDateScanner(task_store, gateway).run_cycle(now=scan_now)

        assert report.candidates == 0
        assert webhook_endpoint.requests == []
        assert (await task_store.get_task(task.task_id)).webhook_sent is False

    async def test_far_future_task_notified_once_it_enters_window(
        self, task_store, add_task, gateway, webhook_endpoint, scan_now
    ):
        await add_task(due_in=timedelta(hours=2))
        scanner = DueDateScanner(task_store, gateway)

        await scanner.run_cycle(now=scan_now)
        report = await scanner.run_cycle(now=scan_now + timedelta(minutes=61))

        assert report.delivered == 1
        assert len(webhook_endpoint.requests) == 1

    async def test_past_due_task_never_notified(
        self, task_store, add_task, gateway, webhook_endpoint, scan_now
    ):
        await add_task(due_in=-timedelta(minutes=10))
        report = await DueDateScanner(task_store, gateway).run_cycle(now=scan_now)

        assert report.candidates == 0
        assert webhook_endpoint.requests == []

    async def test_done_task_still_notified(
        self, task_store, add_task, gateway, webhook_endpoint, scan_now
    ):
        await add_task(status=TaskStatus.DONE)
        report = await DueDateScanner(task_store, gateway).run_cycle(now=scan_now)
        assert report.delivered == 1

    async def test_soft_deleted_task_not_notified(
        self, task_store, add_task, gateway, webhook_endpoint, scan_now
    ):
        task = await add_task()
        await task_store.soft_delete_task(task.task_id)

        report = await DueDateScanner(task_store, gateway).run_cycle(now=scan_now)
        assert report.candidates == 0
        assert webhook_endpoint.requests == []

    async def test_lookahead_controls_window(
        self, task_store, add_task, gateway, webhook_endpoint, scan_now
    ):
        await add_task(due_in=timedelta(minutes=20))
        await add_task(due_in=timedelta(minutes=40))

        scanner = DueDateScanner(task_store, gateway, lookahead_s=1800)
        report = await scanner.run_cycle(now=scan_now)

        assert report.window_end == scan_now + timedelta(minutes=30)
        assert report.delivered == 1


class TestFailureIsolation:
    async def test_failed_task_does_not_block_others(
        self, task_store, add_task, gateway, webhook_endpoint, scan_now
    ):
        broken = await add_task(webhook_url=OTHER_URL)
        healthy = await add_task(webhook_url=HOOK_URL)
        webhook_endpoint.status_by_url[OTHER_URL] = 500

        report = await DueDateScanner(task_store, gateway).run_cycle(now=scan_now)

        assert report.delivered == 1
        assert report.failed == 1
        assert (await task_store.get_task(broken.task_id)).webhook_sent is False
        assert (await task_store.get_task(healthy.task_id)).webhook_sent is True

    async def test_failed_task_retried_next_cycle(
        self, task_store, add_task, gateway, webhook_endpoint, scan_now
    ):
        task = await add_task()
        webhook_endpoint.status_code = 503
        scanner = DueDateScanner(task_store, gateway)

        first = await scanner.run_cycle(now=scan_now)
        assert first.failed == 1

        webhook_endpoint.status_code = 200
        second = await scanner.run_cycle(now=scan_now + timedelta(minutes=1))

        assert second.delivered == 1
        assert len(webhook_endpoint.requests) == 2
        assert (await task_store.get_task(task.task_id)).webhook_sent is True

    async def test_gateway_exception_is_contained(
        self, task_store, add_task, gateway, webhook_endpoint, scan_now
    ):
        bad = await add_task()
        good = await add_task()
        scanner = DueDateScanner(task_store, ExplodingGateway(gateway, bad.task_id))

        report = await scanner.run_cycle(now=scan_now)

        assert report.outcome == CycleOutcome.COMPLETED
        assert report.failed == 1
        assert report.delivered == 1
        assert (await task_store.get_task(bad.task_id)).webhook_sent is False
        assert (await task_store.get_task(good.task_id)).webhook_sent is True

    async def test_missing_url_is_skipped(
        self, task_store, add_task, gateway, webhook_endpoint, scan_now
    ):
        task = await add_task(webhook_url=None)
        report = await DueDateScanner(task_store, gateway).run_cycle(now=scan_now)

        assert report.candidates == 1
        assert report.skipped_no_url == 1
        assert report.delivered == 0
        assert webhook_endpoint.requests == []
        assert (await task_store.get_task(task.task_id)).webhook_sent is False

    async def test_query_failure_aborts_cycle(self, gateway, webhook_endpoint, scan_now):
        store = FailingQueryStore()
        scanner = DueDateScanner(store, gateway)

        report = await scanner.run_cycle(now=scan_now)

        assert report.outcome == CycleOutcome.ABORTED
        assert "database is locked" in report.error
        assert webhook_endpoint.requests == []
        assert store.marked == []
        assert scanner.last_report is report

    async def test_persist_failure_leaves_task_unmarked(
        self, task_store, add_task, gateway, webhook_endpoint, scan_now
    ):
        task = await add_task()
        scanner = DueDateScanner(FailingMarkStore(task_store), gateway)

        report = await scanner.run_cycle(now=scan_now)

        assert report.persist_failed == 1
        assert report.delivered == 0
        assert len(webhook_endpoint.requests) == 1
        assert (await task_store.get_task(task.task_id)).webhook_sent is False


class TestConcurrentChanges:
    async def test_url_replaced_during_delivery_is_not_marked(
        self, task_store, add_task, scan_now
    ):
        task = await add_task(webhook_url=HOOK_URL)

        async def handler(request: httpx.Request) -> httpx.Response:
            # 投递进行中重新注册了新的 URL
            await task_store.update_fields(
                task.task_id, {"webhook_url": OTHER_URL, "webhook_sent": False}
            )
            return httpx.Response(200)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        scanner = DueDateScanner(task_store, WebhookGateway(client=client))

        report = await scanner.run_cycle(now=scan_now)

        assert report.superseded == 1
        assert report.delivered == 0
        fetched = await task_store.get_task(task.task_id)
        assert fetched.webhook_url == OTHER_URL
        assert fetched.webhook_sent is False
        await client.aclose()

    async def test_overlapping_cycle_is_skipped(self, task_store, add_task, scan_now):
        await add_task()
        started, release = asyncio.Event(), asyncio.Event()
        gateway = _blocking_gateway(started, release)
        scanner = DueDateScanner(task_store, gateway)

        first = asyncio.create_task(scanner.run_cycle(now=scan_now))
        await asyncio.wait_for(started.wait(), timeout=2)
        assert scanner.is_running

        overlapped = await scanner.run_cycle(now=scan_now)
        assert overlapped.outcome == CycleOutcome.SKIPPED
        assert overlapped.candidates == 0

        release.set()
        report = await first
        assert report.outcome == CycleOutcome.COMPLETED
        assert report.delivered == 1
        assert not scanner.is_running
        # 跳过的周期不覆盖最近报告
        assert scanner.last_report is report

    async def test_cycle_deadline_counts_unfinished_as_failed(
        self, task_store, add_task, scan_now
    ):
        task = await add_task()
        started, release = asyncio.Event(), asyncio.Event()
        scanner = DueDateScanner(
            task_store,
            _blocking_gateway(started, release),
            max_cycle_s=0.2,
        )

        report = await asyncio.wait_for(scanner.run_cycle(now=scan_now), timeout=3)

        assert report.outcome == CycleOutcome.COMPLETED
        assert report.failed == 1
        assert report.delivered == 0
        assert (await task_store.get_task(task.task_id)).webhook_sent is False

    async def test_sequential_processing(
        self, task_store, add_task, gateway, webhook_endpoint, scan_now
    ):
        for _ in range(3):
            await add_task()
        scanner = DueDateScanner(task_store, gateway, concurrency=1)

        report = await scanner.run_cycle(now=scan_now)

        assert report.delivered == 3
        assert len(webhook_endpoint.requests) == 3
