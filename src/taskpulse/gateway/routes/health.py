"""健康检查路由

GET /health: Liveness 检查，永远返回 200。
GET /ready: Readiness 检查，包含 SQLite 连通性与扫描调度器状态。
"""

import structlog
from fastapi import APIRouter, Request
from starlette.responses import JSONResponse

log = structlog.get_logger()

router = APIRouter()


@router.get("/health")
async def health():
    """Liveness 检查 -- 永远返回 200"""
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request):
    """Readiness 检查 -- 验证核心依赖可用性

    检查项：
    1. sqlite: 数据库连通性
    2. scheduler: running / disabled / stopped（stopped 视为未就绪）
    3. last_scan: 最近一次周期结果（仅展示，不影响就绪判断）
    """
    checks = {}
    all_ok = True

    # 1. SQLite 连通性检查
    try:
        store_group = request.app.state.store_group
        cursor = await store_group.conn.execute("SELECT 1")
        await cursor.fetchone()
        checks["sqlite"] = "ok"
    except Exception as e:
        log.warning("ready_check_sqlite_failed", error=str(e))
        checks["sqlite"] = f"error: {str(e)}"
        all_ok = False

    # 2. 调度器状态
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        checks["scheduler"] = "disabled"
    elif scheduler.is_running:
        checks["scheduler"] = "running"
    else:
        checks["scheduler"] = "stopped"
        all_ok = False

    # 3. 最近一次扫描
    scanner = getattr(request.app.state, "scanner", None)
    last_report = scanner.last_report if scanner is not None else None
    checks["last_scan"] = last_report.outcome.value if last_report else "none"

    status_code = 200 if all_ok else 503
    status_text = "ready" if all_ok else "not_ready"

    return JSONResponse(
        status_code=status_code,
        content={
            "status": status_text,
            "checks": checks,
        },
    )
