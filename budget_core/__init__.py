"""Core business logic package for the household budget tracker."""

from .config_store import ConfigStore
from .exceptions import (
    ConflictError,
    CorruptRecordError,
    MirrorError,
    PersistenceError,
    RecordNotFoundError,
    ValidationError,
)
from .models import Configuration, DateBucket, Member, Transaction
from .services import BudgetApp, LedgerService, TransactionService, open_budget
from .storage import JSONDirectoryBackend, KeyValueBackend, MemoryBackend
from .store import BucketStore
from .sweeper import RetentionSweeper, SweepReport

__all__ = [
    "BucketStore",
    "BudgetApp",
    "ConfigStore",
    "Configuration",
    "ConflictError",
    "CorruptRecordError",
    "DateBucket",
    "JSONDirectoryBackend",
    "KeyValueBackend",
    "LedgerService",
    "Member",
    "MemoryBackend",
    "MirrorError",
    "PersistenceError",
    "RecordNotFoundError",
    "RetentionSweeper",
    "SweepReport",
    "Transaction",
    "TransactionService",
    "ValidationError",
    "open_budget",
]
