from skipguard.storage.ledger_store import (
    ArtifactLedgerStore,
    DiskLedgerStore,
    LedgerStore,
    ledger_name,
)

__all__ = [
    "ArtifactLedgerStore",
    "DiskLedgerStore",
    "LedgerStore",
    "ledger_name",
]
