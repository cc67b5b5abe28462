"""Tests for the exception taxonomy and result envelopes."""

from __future__ import annotations

import pytest
from pydantic import BaseModel, ValidationError

from treevault.errors import (
    NotFoundError,
    PermissionDeniedError,
    PreconditionError,
    RepositoryNotInitializedError,
    TreeVaultError,
    build_error_result,
    corrective_action,
)
from treevault.results import OperationResult, failure_result, success_result


class _Strict(BaseModel):
    count: int


def _validation_error() -> ValidationError:
    try:
        _Strict(count="many")
    except ValidationError as e:
        return e
    raise AssertionError("expected a ValidationError")


class TestBuildErrorResult:
    """Tests for build_error_result()."""

    @pytest.mark.parametrize(
        "error, expected",
        [
            (NotFoundError("x"), "not_found"),
            (PreconditionError("x"), "precondition"),
            (PermissionDeniedError("x"), "permission_denied"),
            (TreeVaultError("x"), "internal_error"),
            (ValueError("x"), "validation_error"),
            (FileNotFoundError("x"), "not_found"),
            (PermissionError("x"), "permission_denied"),
            (RuntimeError("x"), "internal_error"),
        ],
    )
    def test_error_type_mapping(self, error, expected):
        result = build_error_result(error, "sync")
        assert not result.success
        assert result.error.error_type == expected
        assert result.error.exception_type == type(error).__name__

    def test_pydantic_validation_error(self):
        result = build_error_result(_validation_error(), "version")
        assert result.error.error_type == "validation_error"

    def test_uninitialized_repository_names_repository(self):
        result = build_error_result(
            RepositoryNotInitializedError("No version repository at /r"),
            "version",
            entity_name="/r",
        )
        assert result.error.error_type == "not_found"
        assert result.error.corrective_action == (
            "Run initialize_repository for '/r' first."
        )

    def test_partial_data_attached(self):
        result = build_error_result(OSError("disk"), "snapshot", data={"files": 3})
        assert result.data == {"files": 3}


class TestCorrectiveAction:
    def test_domain_specific(self):
        assert "list_snapshots" in corrective_action("snapshot", "not_found")
        assert "get_version_history" in corrective_action("version", "not_found")

    def test_unknown_domain_falls_back_to_sync(self):
        assert corrective_action("other", "not_found") == corrective_action(
            "sync", "not_found"
        )

    def test_unknown_error_type_falls_back(self):
        assert corrective_action("sync", "weird") == corrective_action(
            "sync", "internal_error"
        )


class TestOperationResult:
    def test_success_to_text(self):
        result = success_result("2/2 files synchronized", data=[1, 2])
        assert result.success
        assert result.to_text() == "2/2 files synchronized"

    def test_failure_to_text(self):
        result = failure_result("not_found", "Missing", "Create it.")
        assert result.to_text() == "Error (not_found): Missing\n\nAction: Create it."

    def test_failure_without_action(self):
        result = failure_result("internal_error", "Broken")
        assert result.to_text() == "Error (internal_error): Broken"

    def test_frozen(self):
        result = success_result("ok")
        with pytest.raises(ValidationError):
            result.success = False

    def test_timestamp_set(self):
        assert OperationResult(success=True, message="ok").timestamp is not None
