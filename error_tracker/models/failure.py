"""Failure variants produced by classifying a raised value."""

import traceback
from typing import Any, Optional, Union

from pydantic import BaseModel


class Fault(BaseModel):
    """An unexpected exception with an optional formatted traceback."""

    name: str
    message: str
    stack: Optional[str] = None


class ExpectedFailure(BaseModel):
    """An anticipated business-rule violation; shown to the user verbatim."""

    message: str


class Opaque(BaseModel):
    """A raised value that is not an exception at all."""

    text: str


Failure = Union[Fault, ExpectedFailure, Opaque]

DEFAULT_EXPECTED_MESSAGE = "An expected error occurred."


def safe_text(value: Any) -> str:
    """Render a value as text, even when its ``__str__`` raises."""
    try:
        return str(value)
    except Exception:
        try:
            return repr(value)
        except Exception:
            return f"<unprintable {type(value).__name__}>"


def format_stack(error: BaseException) -> Optional[str]:
    """Format the traceback of a raised exception, or None if it was never raised."""
    if error.__traceback__ is None:
        return None
    return "".join(traceback.format_exception(type(error), error, error.__traceback__))


def classify_failure(value: Any) -> Failure:
    """
    Map an arbitrary raised value onto one of the failure variants.

    Exceptions carrying a truthy ``expected`` attribute (see ``UserError``)
    become ``ExpectedFailure``; any other exception becomes ``Fault``;
    everything else is ``Opaque``. Values that are already variants pass through.
    """
    if isinstance(value, (Fault, ExpectedFailure, Opaque)):
        return value

    if isinstance(value, BaseException):
        if getattr(value, "expected", False) is True:
            message = getattr(value, "message", None) or safe_text(value) or DEFAULT_EXPECTED_MESSAGE
            return ExpectedFailure(message=safe_text(message))
        return Fault(
            name=type(value).__name__,
            message=safe_text(value),
            stack=format_stack(value),
        )

    return Opaque(text=safe_text(value))
