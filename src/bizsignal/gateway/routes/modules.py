"""模块路由

GET /api/modules: 模块配置与订阅状态。
POST /api/modules/{module_id}/register: 订阅模块集合（重复注册为无操作）。
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from bizsignal.core.engine import Engine

from ..deps import get_engine

router = APIRouter()


class RegisterRequest(BaseModel):
    collections: list[str] | None = Field(default=None, description="为空时订阅模块的全部集合")


@router.get("/api/modules")
async def list_modules(engine: Engine = Depends(get_engine)):
    subscribed: dict[str, list[str]] = {}
    for handle in engine.listener.subscriptions():
        subscribed.setdefault(handle.module_id, []).append(handle.collection)

    modules = []
    for module in engine.listener.module_configs():
        modules.append(
            {
                "id": module.id,
                "name": module.name,
                "subsidiary": module.subsidiary,
                "description": module.description,
                "enabled": module.enabled,
                "event_types": engine.registry.event_types(module.id),
                "collections": [b.collection for b in module.collections],
                "subscribed": sorted(subscribed.get(module.id, [])),
            }
        )
    return {"modules": modules}


@router.post("/api/modules/{module_id}/register")
async def register_module(
    module_id: str,
    body: RegisterRequest | None = None,
    engine: Engine = Depends(get_engine),
):
    handles = await engine.listener.register_module(
        module_id,
        body.collections if body is not None else None,
    )
    return {
        "module_id": engine.registry.canonical_module(module_id),
        "subscriptions": [
            {"collection": h.collection, "active": h.active} for h in handles
        ],
    }
