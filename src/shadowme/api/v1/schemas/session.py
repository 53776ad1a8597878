from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ParticipantOut(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str
    display_name: str


class SessionUpdateOut(BaseModel):
    session_id: str
    delivered: int
