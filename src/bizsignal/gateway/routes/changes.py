"""变更推送路由

POST /api/changes: 业务模块推送文档变更，投递到进程内变更流（202）。
处理异步进行；没有订阅者的集合会丢弃通知（delivered=0）。
"""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends
from starlette.responses import JSONResponse

from bizsignal.core.models import ChangeNotification
from bizsignal.core.services import InMemoryChangeFeed

from ..deps import get_change_feed

router = APIRouter()


@router.post("/api/changes")
async def ingest_change(
    change: ChangeNotification,
    feed: InMemoryChangeFeed = Depends(get_change_feed),
):
    if change.received_at is None:
        change = change.model_copy(update={"received_at": datetime.now(UTC)})
    delivered = feed.publish(change)
    return JSONResponse(
        status_code=202,
        content={
            "collection": change.collection,
            "document_id": change.document_id,
            "delivered": delivered,
        },
    )
