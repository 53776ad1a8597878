"""FastAPI dependency injection helpers."""
from __future__ import annotations

from typing import Annotated

from fastapi import Depends
from starlette.requests import HTTPConnection

from shadowme.services.session_relay import SessionRelay


def get_relay(conn: HTTPConnection) -> SessionRelay:
    return conn.app.state.relay


RelayDep = Annotated[SessionRelay, Depends(get_relay)]
