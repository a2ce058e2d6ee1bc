"""
Error taxonomy shared by the backend and the client.

The backend renders these as ``{"code": ..., "message": ...}`` bodies; the client
maps responses back to the same classes with :func:`error_from_response`.
"""
from typing import Any, Dict, Optional, Type


class EventuraError(Exception):
    status_code = 500
    code = "UNKNOWN"
    default_message = "Something went wrong"

    def __init__(self, message: Optional[str] = None, **context: Any):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"code": self.code, "message": self.message}
        body.update(self.context)
        return body


class Unknown(EventuraError):
    pass


class Unauthenticated(EventuraError):
    status_code = 401
    code = "UNAUTHENTICATED"
    default_message = "Not authenticated"


class InvalidCredentials(Unauthenticated):
    code = "INVALID_CREDENTIALS"
    default_message = "Invalid email or password"


class InvalidToken(Unauthenticated):
    code = "INVALID_TOKEN"
    default_message = "Invalid token"


class Forbidden(EventuraError):
    status_code = 403
    code = "FORBIDDEN"
    default_message = "Not authorized to perform this action"


class AccountSuspended(Forbidden):
    code = "ACCOUNT_SUSPENDED"
    default_message = (
        "Your account has been suspended. If you believe this is a mistake "
        "or would like to appeal this decision, please contact our admin team."
    )

    def __init__(self, message: Optional[str] = None, contact: Optional[str] = None, **context: Any):
        if contact is None:
            from .config import settings

            contact = settings.support_contact
        self.contact = contact
        super().__init__(message, contact=contact, **context)


class NotFound(EventuraError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Not found"


class Conflict(EventuraError):
    status_code = 409
    code = "CONFLICT"
    default_message = "Conflict"


class DuplicatePitch(Conflict):
    code = "DUPLICATE_PITCH"
    default_message = "You have already pitched on this request"


class AlreadyReviewed(Conflict):
    code = "ALREADY_REVIEWED"
    default_message = "This request has already been reviewed"


class DuplicatePayment(Conflict):
    code = "DUPLICATE_PAYMENT"
    default_message = "A payment already exists for this request"


class EmailAlreadyExists(Conflict):
    code = "EMAIL_EXISTS"
    default_message = "Email already exists"


class InvalidTransition(EventuraError):
    status_code = 409
    code = "INVALID_TRANSITION"
    default_message = "Transition not allowed"


class InvalidInput(EventuraError):
    status_code = 400
    code = "INVALID_INPUT"
    default_message = "Invalid input"


class InvalidRating(InvalidInput):
    code = "INVALID_RATING"
    default_message = "Rating is out of range"


def _all_subclasses(cls: Type[EventuraError]):
    for sub in cls.__subclasses__():
        yield sub
        yield from _all_subclasses(sub)


ERRORS_BY_CODE: Dict[str, Type[EventuraError]] = {
    cls.code: cls for cls in [EventuraError, *_all_subclasses(EventuraError)] if cls is not EventuraError
}

ERRORS_BY_STATUS: Dict[int, Type[EventuraError]] = {
    400: InvalidInput,
    401: Unauthenticated,
    403: Forbidden,
    404: NotFound,
    409: Conflict,
    422: InvalidInput,
}


def error_from_response(status_code: int, body: Any) -> EventuraError:
    """Rebuild a typed error from an HTTP failure, falling back on the status code."""
    code = None
    message = None
    context: Dict[str, Any] = {}
    if isinstance(body, dict):
        code = body.get("code")
        message = body.get("message")
        detail = body.get("detail")
        if not message and isinstance(detail, str):
            message = detail
        elif not message and isinstance(detail, list) and detail:
            # FastAPI request validation errors
            first = detail[0]
            if isinstance(first, dict):
                message = first.get("msg")
        if body.get("contact"):
            context["contact"] = body["contact"]

    cls = ERRORS_BY_CODE.get(code) if code else None
    if cls is None:
        cls = ERRORS_BY_STATUS.get(status_code, Unknown)
    if cls is AccountSuspended:
        return AccountSuspended(message, contact=context.get("contact"))
    return cls(message, **context)
