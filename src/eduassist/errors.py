"""Exception taxonomy shared by the gateway, the dispatcher and the client.

Every error that crosses a module boundary derives from ``EduAssistError`` so
the HTTP layer can map it to a status code in one place.
"""

from __future__ import annotations


class EduAssistError(Exception):
    """Base class for all gateway errors.

    Attributes:
        code: machine-readable error code.
        message: human-readable message.
        http_status: status used when the error surfaces over HTTP.
    """

    code = "EDUASSIST_ERROR"
    http_status = 500

    def __init__(self, message: str, **extra):
        self.message = message
        self.extra = extra
        super().__init__(message)


class RequestValidationError(EduAssistError):
    """Turn request missing or malformed; rejected before any stream opens."""

    code = "INVALID_REQUEST"
    http_status = 400


class AuthorizationError(EduAssistError):
    """Caller could not be authenticated."""

    code = "UNAUTHORIZED"
    http_status = 401


class ForbiddenError(AuthorizationError):
    """Caller is authenticated but holds a role that may not chat."""

    code = "FORBIDDEN"
    http_status = 403


class NotFoundError(EduAssistError):
    code = "NOT_FOUND"
    http_status = 404


class ToolExecutionError(EduAssistError):
    """A tool handler failed. Converted to a ToolResult at the dispatch boundary."""

    code = "TOOL_FAILED"


class UnknownToolError(ToolExecutionError):
    code = "UNKNOWN_TOOL"

    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}", name=name)
        self.name = name


class StreamTransportError(EduAssistError):
    """Unrecoverable mid-turn failure (model unreachable, internal exception)."""

    code = "STREAM_FAILED"


class PersistenceError(EduAssistError):
    code = "PERSISTENCE_FAILED"


class TurnRejectedError(EduAssistError):
    """The gateway refused the turn request before opening a stream."""

    code = "TURN_REJECTED"

    def __init__(self, message: str, status_code: int):
        super().__init__(message, status_code=status_code)
        self.status_code = status_code


class TurnInProgressError(EduAssistError):
    code = "TURN_IN_PROGRESS"
    http_status = 409


class DuplicateRecordError(PersistenceError):
    """A record with the same creator-assigned id already exists."""

    code = "DUPLICATE_RECORD"
    http_status = 409
