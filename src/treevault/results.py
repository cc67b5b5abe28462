"""Uniform result envelope returned by every public operation.

``OperationResult`` carries ``success``, a human-readable ``message``, an
optional typed ``data`` payload and, on failure, an ``ErrorDetail`` with
the error category and a corrective action the caller can take.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ErrorDetail(BaseModel):
    """Diagnostic information attached to a failed result.

    Attributes:
        error_type: Category (``not_found``, ``precondition``,
            ``permission_denied``, ``partial_failure``, ``validation_error``,
            ``internal_error``).
        message: Description of what went wrong.
        corrective_action: What the caller can do about it.
        exception_type: Class name of the underlying exception, if any.
    """

    error_type: str
    message: str
    corrective_action: str = ""
    exception_type: str | None = None

    model_config = {"frozen": True}


class OperationResult(BaseModel, Generic[T]):
    """Envelope wrapping the outcome of one operation."""

    success: bool
    message: str
    data: T | None = None
    error: ErrorDetail | None = None
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    model_config = {"frozen": True}

    def to_text(self) -> str:
        """Render the result the way a tool call would present it."""
        if self.success:
            return self.message
        if self.error is None:
            return f"Error: {self.message}"
        text = f"Error ({self.error.error_type}): {self.message}"
        if self.error.corrective_action:
            text += f"\n\nAction: {self.error.corrective_action}"
        return text


def success_result(message: str, data: T | None = None) -> OperationResult[T]:
    return OperationResult(success=True, message=message, data=data)


def failure_result(
    error_type: str,
    message: str,
    corrective_action: str = "",
    *,
    data: T | None = None,
    exception: BaseException | None = None,
) -> OperationResult[T]:
    """Build a failed envelope.

    Args:
        error_type: Error category.
        message: Human-readable error description.
        corrective_action: Specific action the caller can take.
        data: Optional partial payload (e.g. a report with errors).
        exception: The underlying exception, kept for diagnostics.
    """
    return OperationResult(
        success=False,
        message=message,
        data=data,
        error=ErrorDetail(
            error_type=error_type,
            message=str(exception) if exception is not None else message,
            corrective_action=corrective_action,
            exception_type=(
                type(exception).__name__ if exception is not None else None
            ),
        ),
    )
