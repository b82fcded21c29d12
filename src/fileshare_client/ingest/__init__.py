from .connectivity import ConnectivityGate, ConnectivityMonitor
from .coordinator import IngestionCoordinator
from .keys import derive_storage_key, sanitize_name
from .report import notifications, summarize
from .validation import file_category, prepare_batch, validate_file, ValidationResult

__all__ = [
    "ConnectivityGate", "ConnectivityMonitor",
    "IngestionCoordinator",
    "derive_storage_key", "sanitize_name",
    "notifications", "summarize",
    "file_category", "prepare_batch", "validate_file", "ValidationResult",
]
