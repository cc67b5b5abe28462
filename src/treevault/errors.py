"""Exception taxonomy and error-envelope builders.

Whole-call failures are raised as ``TreeVaultError`` subclasses; each
carries an ``error_type`` category.  Per-file failures and ambiguous
conflicts are never raised: they are recorded in reports.

``build_error_result()`` converts an exception into a failed
``OperationResult`` with a corrective action, so callers can recover
without reading tracebacks.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from .results import OperationResult, failure_result


class TreeVaultError(Exception):
    """Base class for errors that abort a whole operation."""

    error_type = "internal_error"


class NotFoundError(TreeVaultError):
    """A referenced path, version, snapshot or repository does not exist."""

    error_type = "not_found"


class PreconditionError(TreeVaultError):
    """The operation cannot run in the current state."""

    error_type = "precondition"


class PermissionDeniedError(TreeVaultError):
    """A root directory or repository cannot be read or written."""

    error_type = "permission_denied"


class RepositoryNotInitializedError(NotFoundError):
    """No ``config.json`` exists at the given repository path."""


# ---------------------------------------------------------------------------
# Domain-specific corrective action messages
# ---------------------------------------------------------------------------

_DOMAIN_MESSAGES: dict[str, dict[str, str]] = {
    "sync": {
        "not_found": "Verify the source and target directories exist.",
        "precondition": "Check the sync options and retry.",
        "permission_denied": "Grant read access to the source and write access to the target.",
        "partial_failure": "Inspect the report errors; fix the listed files and re-run the sync.",
        "validation_error": "Check option names and values (conflict_resolution: newer, larger, source, target).",
        "internal_error": "Retry the operation; if it persists, run with debug logging.",
    },
    "version": {
        "not_found": "Use get_version_history to list existing versions.",
        "not_found_repo": "Run initialize_repository for '{entity_name}' first.",
        "precondition": "Check the repository configuration and file location.",
        "permission_denied": "Grant write access to the repository directory.",
        "partial_failure": "Inspect the listed per-file errors; the remaining files were captured.",
        "validation_error": "Check argument values (max_versions must be at least 1).",
        "internal_error": "Retry the operation; if it persists, run with debug logging.",
    },
    "snapshot": {
        "not_found": "Use list_snapshots to find available snapshots.",
        "not_found_repo": "Run initialize_repository for '{entity_name}' first.",
        "precondition": "Create the snapshot with payload duplication enabled to restore it.",
        "permission_denied": "Grant read access to the tracked tree and write access to the repository.",
        "partial_failure": "Inspect the listed per-file errors; the remaining files were captured.",
        "validation_error": "Check the snapshot arguments.",
        "internal_error": "Retry the operation; if it persists, run with debug logging.",
    },
}


def corrective_action(
    domain: str, error_type: str, entity_name: str | None = None
) -> str:
    msgs = _DOMAIN_MESSAGES.get(domain, _DOMAIN_MESSAGES["sync"])
    if entity_name and f"{error_type}_repo" in msgs:
        return msgs[f"{error_type}_repo"].format(entity_name=entity_name)
    return msgs.get(error_type, msgs["internal_error"])


def build_error_result(
    error: BaseException,
    domain: str,
    entity_name: str | None = None,
    data: Any = None,
) -> OperationResult[Any]:
    """Translate an exception into a failed ``OperationResult``.

    Args:
        error: The exception raised by the operation.
        domain: Operation domain (``sync``, ``version``, ``snapshot``).
        entity_name: Optional repository path for contextual suggestions.
        data: Optional partial payload to attach.
    """
    match error:
        case RepositoryNotInitializedError():
            error_type = "not_found"
            action = corrective_action(domain, error_type, entity_name)
        case TreeVaultError():
            error_type = error.error_type
            action = corrective_action(domain, error_type)
        case ValidationError() | ValueError():
            error_type = "validation_error"
            action = corrective_action(domain, error_type)
        case FileNotFoundError():
            error_type = "not_found"
            action = corrective_action(domain, error_type)
        case PermissionError():
            error_type = "permission_denied"
            action = corrective_action(domain, error_type)
        case _:
            error_type = "internal_error"
            action = corrective_action(domain, error_type)
    return failure_result(
        error_type, str(error), action, data=data, exception=error
    )
