"""
Error taxonomy shared by the stores, the similarity scan and the HTTP layer.
"""

from typing import Optional


class WorkLedgerError(Exception):
    """Base class for all domain errors."""
    pass


class ValidationError(WorkLedgerError):
    """Input rejected before any state change."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


class NotFoundError(WorkLedgerError):
    """Unknown id, or an id owned by someone else. Both look the same to the caller."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(f"{resource} not found")
        self.resource = resource
        self.resource_id = resource_id


class PlagiarismRejected(WorkLedgerError):
    """Submission scored at or above the flag threshold; nothing was persisted."""

    def __init__(self, result):
        super().__init__("Plagiarism detected")
        self.result = result


class PersistenceError(WorkLedgerError):
    """Durable write or load failed. The public message never carries storage details."""

    def __init__(self, message: str = "Failed to persist records"):
        super().__init__(message)


class NotificationError(WorkLedgerError):
    """Outbound notification failed. Always caught by the dispatcher."""
    pass


class AuthenticationError(WorkLedgerError):
    """Credential missing, invalid or expired."""
    pass


class UnsupportedFormatError(WorkLedgerError):
    """Document type the extractor cannot turn into text."""

    def __init__(self, declared_type: str):
        super().__init__(f"Unsupported document type: {declared_type}")
        self.declared_type = declared_type
