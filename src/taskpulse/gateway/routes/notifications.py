"""通知扫描路由

POST /api/notifications/scan: 立即执行一个扫描周期，返回 ScanReport。
已有周期在运行时返回 outcome=SKIPPED（不排队、不并发）。
GET  /api/notifications/last-scan: 最近一次完成（或放弃）的周期报告。
"""

from fastapi import APIRouter, Depends
from taskpulse.notifier import DueDateScanner, ScanReport

from ..deps import get_scanner
from .errors import error_response

router = APIRouter()


@router.post("/api/notifications/scan", response_model=ScanReport)
async def trigger_scan(scanner: DueDateScanner = Depends(get_scanner)):
    """手动触发一个扫描周期"""
    return await scanner.run_cycle()


@router.get("/api/notifications/last-scan", response_model=ScanReport)
async def last_scan(scanner: DueDateScanner = Depends(get_scanner)):
    """查询最近一次周期报告，尚未运行过时返回 404"""
    report = scanner.last_report
    if report is None:
        return error_response(404, "NO_SCAN_YET", "No scan cycle has run yet")
    return report
