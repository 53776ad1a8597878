from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class NotFoundError(AppError):
    pass


class ValidationError(AppError):
    pass


class AuthenticationError(AppError):
    pass


class TransportError(AppError):
    """The underlying realtime transport failed to open, send or receive."""


class TransportClosed(TransportError):
    """The peer closed the transport cleanly."""


class MalformedEnvelopeError(AppError):
    """An inbound frame is not a valid envelope."""


class ProtocolError(AppError):
    """An envelope the relay refuses; reported back as an ``error`` envelope."""

    def __init__(self, code: str, detail: str = "") -> None:
        self.code = code
        super().__init__(detail)
