"""Exceptions raised by the store boundary and the PO confirmation workflow."""
from typing import Optional


class StoreError(Exception):
    """Base exception for persistent store errors"""
    pass


class AuthorizationDenied(StoreError):
    """A write violated an ownership, role or protected-field rule.

    Raised from inside the flush, so the whole row delta is rolled back.
    """

    def __init__(self, reason: str, table: Optional[str] = None, command: Optional[str] = None):
        self.reason = reason
        self.table = table
        self.command = command
        where = f" on {table} ({command})" if table else ""
        super().__init__(f"Write denied{where}: {reason}")


class TransientWriteFailure(StoreError):
    """The store was unreachable or dropped the connection during a write"""
    pass


class OrderNotFound(StoreError):
    """Order does not exist or is not visible to the caller"""
    pass


class CreditLimitExceeded(StoreError):
    """Accepting the quote would push credit_used past credit_limit"""
    pass


class WorkflowError(Exception):
    """Base exception for PO confirmation workflow errors"""
    pass


class ConfirmationIncomplete(WorkflowError):
    """Both confirmation checkboxes must be accepted before submitting"""
    pass


class SubmissionInProgress(WorkflowError):
    """A submission for this order is already in flight"""
    pass


class SubmissionFailed(WorkflowError):
    """The confirmation write failed; the workflow stays unconfirmed"""

    def __init__(self, message: str, retryable: bool = False):
        self.retryable = retryable
        super().__init__(message)
