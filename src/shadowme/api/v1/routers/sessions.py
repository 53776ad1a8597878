from __future__ import annotations

from fastapi import APIRouter, status

from shadowme.api.deps import RelayDep
from shadowme.api.v1.schemas.session import ParticipantOut, SessionUpdateOut

router = APIRouter(prefix="/api/v1/shadow-sessions", tags=["shadow-sessions"])


@router.get(
    "/{session_id}/participants",
    response_model=list[ParticipantOut],
    response_model_by_alias=True,
)
async def list_live_participants(session_id: str, relay: RelayDep) -> list[ParticipantOut]:
    return [
        ParticipantOut(user_id=p.user_id, display_name=p.display_name)
        for p in relay.manager.participants(session_id)
    ]


@router.post(
    "/{session_id}/updates",
    response_model=SessionUpdateOut,
    status_code=status.HTTP_202_ACCEPTED,
)
async def publish_session_update(session_id: str, relay: RelayDep) -> SessionUpdateOut:
    delivered = await relay.publish_session_update(session_id)
    return SessionUpdateOut(session_id=session_id, delivered=delivered)
