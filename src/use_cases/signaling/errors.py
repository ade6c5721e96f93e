"""
Signaling error taxonomy.

Every error carries an ``error_type`` that travels on the wire so transports
can raise the same exception on the client side.
"""


class SignalingError(Exception):
    """Base class for all signaling failures."""

    error_type = "SignalingError"
    http_status = 500

    def __init__(self, message: str, session_id: str = None, role: str = None):
        self.message = message
        self.session_id = session_id
        self.role = role
        super().__init__(message)

    def to_response(self) -> dict:
        response = {
            "status": "error",
            "error_type": self.error_type,
            "error": self.message,
        }
        if self.session_id is not None:
            response["session_id"] = self.session_id
        return response


class DuplicateSession(SignalingError):
    error_type = "DuplicateSession"
    http_status = 409


class NotFound(SignalingError):
    error_type = "NotFound"
    http_status = 404


class InvalidTransition(SignalingError):
    error_type = "InvalidTransition"
    http_status = 409


class DescriptionConflict(SignalingError):
    error_type = "DescriptionConflict"
    http_status = 409


class SessionTerminated(SignalingError):
    error_type = "SessionTerminated"
    http_status = 410


class SignalingTimeout(SignalingError):
    error_type = "SignalingTimeout"
    http_status = 504


class TransportError(SignalingError):
    error_type = "TransportError"
    http_status = 502


class InvalidMessage(SignalingError):
    error_type = "InvalidMessage"
    http_status = 400


ERROR_TYPES = {
    cls.error_type: cls
    for cls in (
        DuplicateSession,
        NotFound,
        InvalidTransition,
        DescriptionConflict,
        SessionTerminated,
        SignalingTimeout,
        TransportError,
        InvalidMessage,
    )
}


def error_from_response(response: dict) -> SignalingError:
    """Rebuild the exception described by an error response body."""
    error_cls = ERROR_TYPES.get(response.get("error_type"), TransportError)
    return error_cls(
        response.get("error") or "Signaling request failed",
        session_id=response.get("session_id"),
    )
