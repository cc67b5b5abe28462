"""treevault: file tree synchronization and versioning engine.

Reconciles directory trees under configurable conflict policies, backs
them up, and keeps a content-addressed history of individual files and
whole-tree snapshots in a repository directory.

Usage example
-------------
::

    from treevault import TreeVaultService

    service = TreeVaultService.from_environment()
    result = service.sync_directories("docs", "/mnt/backup/docs")
    print(result.message)   # "12/15 files synchronized, 2 conflicts, 1 error"
"""

from .errors import (
    NotFoundError,
    PermissionDeniedError,
    PreconditionError,
    TreeVaultError,
)
from .results import ErrorDetail, OperationResult
from .service import TreeVaultService

__version__ = "0.1.0"

__all__ = [
    "ErrorDetail",
    "NotFoundError",
    "OperationResult",
    "PermissionDeniedError",
    "PreconditionError",
    "TreeVaultError",
    "TreeVaultService",
    "__version__",
]
