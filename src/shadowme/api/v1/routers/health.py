from __future__ import annotations

from fastapi import APIRouter

from shadowme.api.deps import RelayDep

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(relay: RelayDep) -> dict[str, str | int]:
    return {"status": "ready", "connections": relay.manager.connection_count}
