"""Webhook 注册路由

POST   /api/webhooks/{task_id}: 注册到期通知地址（重置 webhook_sent）
DELETE /api/webhooks/{task_id}: 移除通知地址
"""

from fastapi import APIRouter, Depends
from pydantic import AnyHttpUrl, BaseModel, Field
from taskpulse.core.config import WEBHOOK_URL_MAX_LENGTH

from ..deps import get_store_group
from ..services.webhook_service import WebhookService
from .errors import error_response, task_not_found

router = APIRouter()


class RegisterWebhookRequest(BaseModel):
    """注册请求体"""

    url: AnyHttpUrl = Field(description="接收到期通知的 http(s) 地址")


class WebhookResponse(BaseModel):
    """注册/移除结果"""

    message: str


@router.post("/api/webhooks/{task_id}", status_code=201, response_model=WebhookResponse)
async def register_webhook(
    task_id: int,
    body: RegisterWebhookRequest,
    store_group=Depends(get_store_group),
):
    """为任务注册 webhook 地址

    - 成功返回 201
    - 任务不存在返回 404
    - URL 非法返回 422
    """
    url = str(body.url)
    if len(url) > WEBHOOK_URL_MAX_LENGTH:
        return error_response(422, "INVALID_URL", "webhook url is too long")

    task = await WebhookService(store_group).register_webhook(task_id, url)
    if task is None:
        return task_not_found(task_id)
    return WebhookResponse(message=f"Webhook URL successfully registered for task {task_id}")


@router.delete("/api/webhooks/{task_id}", response_model=WebhookResponse)
async def remove_webhook(task_id: int, store_group=Depends(get_store_group)):
    """移除任务的 webhook 地址"""
    task = await WebhookService(store_group).remove_webhook(task_id)
    if task is None:
        return task_not_found(task_id)
    return WebhookResponse(message=f"Webhook URL successfully removed for task {task_id}")
