# gateway/api/errors.py
"""
Error kinds raised by resolvers, the permission gate and the model layer.
The GraphQL error formatter maps each kind to an ``extensions.code``.
"""
import re
from typing import Any, Dict, Optional

from ariadne import format_error as ariadne_format_error
from graphql import GraphQLError

from gateway.api.utils.logger import log_error


class AuthenticationError(Exception):
    code = "UNAUTHENTICATED"

    def __init__(self, message: str = "You must be signed in"):
        super().__init__(message)


class ForbiddenError(Exception):
    code = "FORBIDDEN"

    def __init__(self, message: str = "Not Authorised!"):
        super().__init__(message)


class ModelValidationError(ValueError):
    """Raised by the model layer when a row fails validation."""

    code = "BAD_USER_INPUT"

    def __init__(self, detail: str, field: Optional[str] = None):
        self.detail = detail
        self.field = field
        super().__init__(f"Validation error: {detail}")


class DatabaseConnectionError(RuntimeError):
    """The persistence layer could not be reached at startup."""


# "<Anything>ValidationError: " source labels, then the generic prefix
_VALIDATION_LABEL = re.compile(r"\b\w*ValidationError: ")
_VALIDATION_PREFIX = "Validation error: "


def clean_message(message: str) -> str:
    message = _VALIDATION_LABEL.sub("", message, count=1)
    return message.replace(_VALIDATION_PREFIX, "", 1)


def format_error(error: GraphQLError, debug: bool = False) -> Dict[str, Any]:
    """
    Remove the internal validation labels from the message and leave only
    the human readable detail.
    """
    formatted = ariadne_format_error(error, debug)
    formatted["message"] = clean_message(formatted.get("message") or "")

    original = getattr(error, "original_error", None)
    code = getattr(original, "code", None)
    if code:
        extensions = dict(formatted.get("extensions") or {})
        extensions.setdefault("code", code)
        formatted["extensions"] = extensions
    elif original is not None:
        log_error("graphql_error", original, path=formatted.get("path"))
    return formatted
