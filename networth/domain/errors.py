"""
Domain error taxonomy.

None of these escape the public aggregation / reorder entry points: the
normalizer degrades on ConversionUnavailable, consolidation emits the record
un-grouped on InvalidIdentityKey, and the reorder resolver turns
ReorderConflict / PersistenceFailure into a rollback plus a notice.
"""

from typing import Optional


class NetworthError(Exception):
    """Base class for all engine errors"""


class ConversionUnavailable(NetworthError):
    """FX service could not convert between two currencies"""

    def __init__(self, from_currency: str, to_currency: str, reason: str = ""):
        self.from_currency = from_currency
        self.to_currency = to_currency
        self.reason = reason
        message = f"Conversion {from_currency}->{to_currency} unavailable"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class InvalidIdentityKey(NetworthError):
    """Record carries neither a symbol nor a name to group on"""

    def __init__(self, record_id: Optional[str], reason: str):
        self.record_id = record_id
        self.reason = reason
        super().__init__(f"Invalid identity key for record {record_id}: {reason}")


class ReorderConflict(NetworthError):
    """Reorder target is no longer valid against the latest snapshot"""

    def __init__(self, instruction, reason: str):
        self.instruction = instruction
        self.reason = reason
        super().__init__(f"Reorder conflict for {instruction.record_id}: {reason}")


class PersistenceFailure(NetworthError):
    """Persistence collaborator rejected or failed a write"""

    def __init__(self, instruction, reason: str):
        self.instruction = instruction
        self.reason = reason
        super().__init__(f"Persisting reorder of {instruction.record_id} failed: {reason}")
