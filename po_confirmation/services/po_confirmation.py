"""Client PO confirmation: confirm a real order and payment terms, then wait
for admin review.

The workflow never checks authorization itself. It issues the write and
reports success or a generic failure; the store decides.
"""
import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.future import select

from po_confirmation.authz.context import CallerContext
from po_confirmation.core.audit_log import log_audit
from po_confirmation.core.enums import AuditAction, ConfirmationStep, OrderStatus
from po_confirmation.core.errors import (
    AuthorizationDenied,
    ConfirmationIncomplete,
    OrderNotFound,
    SubmissionFailed,
    SubmissionInProgress,
    TransientWriteFailure,
)
from po_confirmation.core.metrics import po_submissions
from po_confirmation.db.routines import submit_client_po_confirmation
from po_confirmation.db.session import open_session, write_scope
from po_confirmation.models.base import utcnow
from po_confirmation.models.order import Order
from po_confirmation.services.notifications import enqueue_po_submitted
from po_confirmation.utils.locks import SubmissionLock

logger = logging.getLogger(__name__)

SUBMIT_FAILED_MESSAGE = "Failed to submit PO confirmation. Please try again."

PRE_REVIEW_STATUSES = frozenset({
    OrderStatus.DRAFT,
    OrderStatus.PENDING_PO,
    OrderStatus.PENDING_ADMIN_CONFIRMATION,
})


def has_submitted_confirmation(order: Order) -> bool:
    return bool(
        order.client_po_confirmation_submitted_at
        or (order.not_test_order_confirmed_at and order.payment_terms_confirmed_at)
    )


def resolve_step(order: Order) -> ConfirmationStep:
    if not has_submitted_confirmation(order):
        return ConfirmationStep.UNCONFIRMED
    if order.status not in PRE_REVIEW_STATUSES:
        return ConfirmationStep.ADMIN_REVIEWED
    return ConfirmationStep.SUBMITTED


class POConfirmationWorkflow:
    """One client's confirmation flow for one order.

    ``submit`` is not reentrant: a second call while the first write is in
    flight raises ``SubmissionInProgress``. Pass a ``SubmissionLock`` to
    extend that across processes.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        caller: CallerContext,
        order_id: int,
        lock: Optional[SubmissionLock] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.session_factory = session_factory
        self.caller = caller
        self.order_id = order_id
        self.lock = lock
        self.clock = clock or utcnow

        self.step = ConfirmationStep.UNCONFIRMED
        self.submitting = False
        self.order: Optional[Order] = None

    async def load(self) -> ConfirmationStep:
        """Read the order and resume wherever it left off."""
        async with open_session(self.session_factory, self.caller) as db:
            res = await db.execute(select(Order).where(Order.id == self.order_id))
            order = res.scalars().first()

        if order is None or order.client_id != self.caller.principal_id:
            raise OrderNotFound(f"Order with id {self.order_id} not found")

        self.order = order
        self.step = resolve_step(order)
        return self.step

    async def submit(self, not_test_order_confirmed: bool, payment_terms_confirmed: bool) -> ConfirmationStep:
        if self.order is None:
            await self.load()

        if self.step != ConfirmationStep.UNCONFIRMED:
            logger.info(f"Order {self.order_id} already confirmed ({self.step}), nothing to submit")
            return self.step

        if not (not_test_order_confirmed and payment_terms_confirmed):
            raise ConfirmationIncomplete("Both confirmations must be accepted before submitting")

        if self.submitting:
            raise SubmissionInProgress(f"Submission for order {self.order_id} is already in progress")

        self.submitting = True
        locked = False
        try:
            if self.lock is not None:
                locked = await self.lock.acquire(self.order_id)
                if not locked:
                    raise SubmissionInProgress(f"Submission for order {self.order_id} is already in progress")
            order = await self._write_confirmation()
        finally:
            self.submitting = False
            if locked:
                await self.lock.release(self.order_id)

        self.order = order
        self.step = ConfirmationStep.SUBMITTED
        po_submissions.labels(outcome="submitted").inc()

        try:
            await enqueue_po_submitted(self.session_factory, self.caller, order)
        except TransientWriteFailure as e:
            logger.error(f"PO confirmation for order {self.order_id} saved but notification failed: {e}")

        return self.step

    async def _write_confirmation(self) -> Order:
        confirmed_at = self.clock()
        try:
            async with write_scope(self.session_factory, self.caller) as db:
                order = await submit_client_po_confirmation(db, self.order_id, confirmed_at)
                log_audit(
                    db,
                    self.caller.principal_id,
                    AuditAction.SUBMIT_PO_CONFIRMATION,
                    {"order_id": self.order_id, "confirmed_at": confirmed_at},
                )
        except TransientWriteFailure as e:
            po_submissions.labels(outcome="retryable_failure").inc()
            logger.warning(f"Failed to submit PO confirmation for order {self.order_id}: {e}")
            raise SubmissionFailed(SUBMIT_FAILED_MESSAGE, retryable=True) from e
        except (AuthorizationDenied, OrderNotFound) as e:
            po_submissions.labels(outcome="rejected").inc()
            logger.error(f"Failed to submit PO confirmation for order {self.order_id}: {e}")
            raise SubmissionFailed(SUBMIT_FAILED_MESSAGE) from e
        return order
