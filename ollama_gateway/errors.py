"""Error taxonomy shared by the HTTP layer, the backend client and the relay."""


class GatewayError(Exception):
    """Base class; ``status_code`` is the HTTP status the error maps to."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(GatewayError):
    """Bad client input, rejected before the backend is contacted."""

    status_code = 400


class ModelNotFound(GatewayError):
    status_code = 404


class BackendError(GatewayError):
    """The backend failed while a request or stream was in flight."""

    status_code = 502


class BackendUnreachable(BackendError):
    """Connect or handshake failure."""


class UpstreamError(BackendError):
    """The backend answered, but reported an error (status or in-band record)."""


class DecodeError(GatewayError):
    """A backend record could not be parsed; ``raw`` keeps the offending text."""

    status_code = 502

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message)
        self.raw = raw


class SinkClosedError(GatewayError):
    """The downstream client can no longer be written to."""
