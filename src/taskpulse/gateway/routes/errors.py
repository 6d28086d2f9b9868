"""统一错误响应

{"error": {"code": ..., "message": ...}}
"""

from starlette.responses import JSONResponse


def error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "code": code,
                "message": message,
            }
        },
    )


def task_not_found(task_id: int) -> JSONResponse:
    return error_response(404, "TASK_NOT_FOUND", f"Task with id {task_id} does not exist")
