"""Domain layer: errors and schemas."""

from .errors import (
    DataIntegrityError,
    ErrorCodes,
    GatewayError,
    PassAbortedError,
    PhotoSyncError,
)
from .schemas import (
    Classification,
    CloudSyncResult,
    ExportResult,
    ImportResult,
    NullableField,
    PassResult,
    PhotoRecord,
    RehydrateResult,
    RequiredAction,
    SyncStatus,
    TierState,
    WorkflowResult,
    WorkflowStep,
)

__all__ = [
    "PhotoSyncError",
    "PassAbortedError",
    "GatewayError",
    "DataIntegrityError",
    "ErrorCodes",
    "PhotoRecord",
    "TierState",
    "RequiredAction",
    "NullableField",
    "WorkflowStep",
    "Classification",
    "PassResult",
    "ImportResult",
    "ExportResult",
    "CloudSyncResult",
    "RehydrateResult",
    "WorkflowResult",
    "SyncStatus",
]
