"""
Relay error taxonomy.

None of these cross the relay boundary as raised exceptions: the server turns
them into JSON or stream error records, the client into on_error callbacks.
"""

from typing import Optional


class RelayError(Exception):
    """Base class for relay failures."""


class AuthenticationFailure(RelayError):
    """Caller failed the access check; no backend call was made."""


class BackendUnreachable(RelayError):
    """Transport-level failure talking to the backend."""


class BackendNonSuccess(RelayError):
    """Backend answered with a non-200 status."""

    def __init__(self, status_code: int, body: str = "", reason: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        self.reason = reason
        message = f"Backend error: {status_code}"
        if reason:
            message = f"{message} {reason}"
        super().__init__(message)


class BackendStreamError(RelayError):
    """Backend reported an error record in the middle of a stream."""


class MalformedRecord(RelayError):
    """A single stream line could not be parsed. Never fatal."""

    def __init__(self, line: str, detail: str = ""):
        self.line = line
        super().__init__(detail or f"Malformed record: {line[:80]!r}")


class StreamAborted(RelayError):
    """Exchange cancelled before completion."""

    def __init__(self, reason: str = "aborted"):
        self.reason = reason
        super().__init__(f"Stream aborted: {reason}")


class RelayTimeout(StreamAborted):
    """No initial backend response before the request timer expired."""

    def __init__(self, reason: str = "timeout"):
        super().__init__(reason)
