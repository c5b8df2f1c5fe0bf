import logging
import pytest
from datetime import datetime, timezone
from sqlalchemy import func, select

from po_confirmation.authz.context import CallerContext
from po_confirmation.core.enums import AuditAction, ConfirmationStep, OrderStatus
from po_confirmation.core.errors import (
    ConfirmationIncomplete,
    OrderNotFound,
    SubmissionFailed,
    SubmissionInProgress,
    TransientWriteFailure,
)
from po_confirmation.db.session import open_session
from po_confirmation.models.audit import Audit
from po_confirmation.models.notification import Notification
from po_confirmation.models.order import Order
from po_confirmation.services import po_confirmation as workflow_module
from po_confirmation.services.po_confirmation import (
    SUBMIT_FAILED_MESSAGE,
    POConfirmationWorkflow,
    resolve_step,
)

CONFIRMED_AT = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def fixed_clock():
    return CONFIRMED_AT


def as_caller(user):
    return CallerContext.for_user(user.id, user.role)


async def notifications_for(factory, user_id):
    async with open_session(factory, CallerContext.system()) as db:
        res = await db.execute(select(Notification).where(Notification.user_id == user_id))
        return res.scalars().all()


async def fetch_order(factory, order_id):
    async with open_session(factory, CallerContext.system()) as db:
        return await db.get(Order, order_id)


@pytest.mark.unit
@pytest.mark.workflow
class TestResolveStep:

    def test_fresh_order_is_unconfirmed(self):
        assert resolve_step(Order(status=OrderStatus.PENDING_PO)) == ConfirmationStep.UNCONFIRMED

    def test_submitted_timestamp_means_submitted(self):
        order = Order(status=OrderStatus.PENDING_ADMIN_CONFIRMATION, client_po_confirmation_submitted_at=CONFIRMED_AT)
        assert resolve_step(order) == ConfirmationStep.SUBMITTED

    def test_both_confirmations_mean_submitted(self):
        order = Order(
            status=OrderStatus.PENDING_PO,
            not_test_order_confirmed_at=CONFIRMED_AT,
            payment_terms_confirmed_at=CONFIRMED_AT,
        )
        assert resolve_step(order) == ConfirmationStep.SUBMITTED

    def test_one_confirmation_is_not_enough(self):
        order = Order(status=OrderStatus.PENDING_PO, not_test_order_confirmed_at=CONFIRMED_AT)
        assert resolve_step(order) == ConfirmationStep.UNCONFIRMED

    @pytest.mark.parametrize("status", [OrderStatus.CONFIRMED, OrderStatus.REJECTED, OrderStatus.IN_TRANSIT])
    def test_reviewed_statuses(self, status):
        order = Order(status=status, client_po_confirmation_submitted_at=CONFIRMED_AT)
        assert resolve_step(order) == ConfirmationStep.ADMIN_REVIEWED

    def test_reviewed_status_without_submission_is_unconfirmed(self):
        assert resolve_step(Order(status=OrderStatus.CONFIRMED)) == ConfirmationStep.UNCONFIRMED


@pytest.mark.integration
@pytest.mark.workflow
class TestWorkflowLoad:

    async def test_load_resumes_submitted(self, session_factory, client_user, create_order_factory):
        order = await create_order_factory(
            client_user,
            status=OrderStatus.PENDING_ADMIN_CONFIRMATION,
            client_po_confirmation_submitted_at=CONFIRMED_AT,
        )
        workflow = POConfirmationWorkflow(session_factory, as_caller(client_user), order.id)
        assert await workflow.load() == ConfirmationStep.SUBMITTED
        assert workflow.step == ConfirmationStep.SUBMITTED

    async def test_load_fresh_order(self, session_factory, client_user, create_order_factory):
        order = await create_order_factory(client_user)
        workflow = POConfirmationWorkflow(session_factory, as_caller(client_user), order.id)
        assert await workflow.load() == ConfirmationStep.UNCONFIRMED
        assert workflow.order.id == order.id

    async def test_load_other_clients_order(self, session_factory, client_user, other_client, create_order_factory):
        order = await create_order_factory(client_user)
        workflow = POConfirmationWorkflow(session_factory, as_caller(other_client), order.id)
        with pytest.raises(OrderNotFound):
            await workflow.load()

    async def test_load_missing_order(self, session_factory, client_user):
        workflow = POConfirmationWorkflow(session_factory, as_caller(client_user), 424242)
        with pytest.raises(OrderNotFound):
            await workflow.load()


@pytest.mark.integration
@pytest.mark.workflow
class TestWorkflowSubmit:

    async def test_submit_moves_order_to_admin_review(self, session_factory, client_user, create_order_factory,
                                                      submission_lock):
        order = await create_order_factory(client_user)
        workflow = POConfirmationWorkflow(
            session_factory, as_caller(client_user), order.id, lock=submission_lock, clock=fixed_clock
        )

        step = await workflow.submit(True, True)

        assert step == ConfirmationStep.SUBMITTED
        assert workflow.submitting is False
        assert workflow.order.client_po_confirmation_submitted_at == CONFIRMED_AT
        assert workflow.order.not_test_order_confirmed_at == CONFIRMED_AT
        assert workflow.order.payment_terms_confirmed_at == CONFIRMED_AT

        saved = await fetch_order(session_factory, order.id)
        assert saved.status == OrderStatus.PENDING_ADMIN_CONFIRMATION
        assert saved.client_po_uploaded is False
        assert saved.not_test_order_confirmed_at == saved.payment_terms_confirmed_at
        assert saved.payment_terms_confirmed_at == saved.client_po_confirmation_submitted_at

        assert submission_lock.acquired == [order.id]
        assert submission_lock.held == set()

    async def test_submit_enqueues_exactly_one_notification(self, session_factory, client_user,
                                                            create_order_factory):
        order = await create_order_factory(client_user)
        workflow = POConfirmationWorkflow(session_factory, as_caller(client_user), order.id)

        await workflow.submit(True, True)

        notifications = await notifications_for(session_factory, client_user.id)
        assert len(notifications) == 1
        assert notifications[0].type == "order"
        assert notifications[0].title_key == "notifications.poSubmittedTitle"
        assert notifications[0].message_key == "notifications.poSubmittedMessage"
        assert notifications[0].action_url == "/app?tab=orders"
        assert notifications[0].read is False

    @pytest.mark.audit
    async def test_submit_is_audited(self, session_factory, client_user, create_order_factory):
        order = await create_order_factory(client_user)
        await POConfirmationWorkflow(session_factory, as_caller(client_user), order.id).submit(True, True)

        async with open_session(session_factory, CallerContext.system()) as db:
            res = await db.execute(
                select(Audit).where(Audit.action == AuditAction.SUBMIT_PO_CONFIRMATION.value)
            )
            audits = res.scalars().all()
        assert len(audits) == 1
        assert audits[0].user_id == client_user.id

    @pytest.mark.parametrize("not_test,terms", [(False, False), (True, False), (False, True)])
    async def test_submit_requires_both_confirmations(self, session_factory, client_user, create_order_factory,
                                                      not_test, terms):
        order = await create_order_factory(client_user)
        workflow = POConfirmationWorkflow(session_factory, as_caller(client_user), order.id)

        with pytest.raises(ConfirmationIncomplete):
            await workflow.submit(not_test, terms)

        assert workflow.step == ConfirmationStep.UNCONFIRMED
        saved = await fetch_order(session_factory, order.id)
        assert saved.status == OrderStatus.PENDING_PO
        assert saved.client_po_confirmation_submitted_at is None

    async def test_already_submitted_is_not_rewritten(self, session_factory, client_user, create_order_factory):
        order = await create_order_factory(
            client_user,
            status=OrderStatus.PENDING_ADMIN_CONFIRMATION,
            client_po_confirmation_submitted_at=CONFIRMED_AT,
        )
        workflow = POConfirmationWorkflow(session_factory, as_caller(client_user), order.id)

        assert await workflow.submit(True, True) == ConfirmationStep.SUBMITTED
        assert await notifications_for(session_factory, client_user.id) == []

    async def test_denied_write_fails_generically(self, session_factory, client_user, create_order_factory):
        # Status moved on without a submission; the store refuses the confirmation.
        order = await create_order_factory(client_user, status=OrderStatus.CANCELLED)
        workflow = POConfirmationWorkflow(session_factory, as_caller(client_user), order.id)

        with pytest.raises(SubmissionFailed) as exc_info:
            await workflow.submit(True, True)

        assert str(exc_info.value) == SUBMIT_FAILED_MESSAGE
        assert exc_info.value.retryable is False
        assert workflow.step == ConfirmationStep.UNCONFIRMED
        assert workflow.submitting is False
        assert await notifications_for(session_factory, client_user.id) == []

    async def test_transient_failure_is_retryable(self, session_factory, client_user, create_order_factory,
                                                  monkeypatch):
        order = await create_order_factory(client_user)

        async def connection_lost(session, order_id, confirmed_at):
            raise OSError("connection reset by peer")

        monkeypatch.setattr(workflow_module, "submit_client_po_confirmation", connection_lost)
        workflow = POConfirmationWorkflow(session_factory, as_caller(client_user), order.id)

        with pytest.raises(SubmissionFailed) as exc_info:
            await workflow.submit(True, True)

        assert exc_info.value.retryable is True
        assert workflow.step == ConfirmationStep.UNCONFIRMED
        assert (await fetch_order(session_factory, order.id)).status == OrderStatus.PENDING_PO

    async def test_in_flight_submission_rejected(self, session_factory, client_user, create_order_factory):
        order = await create_order_factory(client_user)
        workflow = POConfirmationWorkflow(session_factory, as_caller(client_user), order.id)
        await workflow.load()
        workflow.submitting = True

        with pytest.raises(SubmissionInProgress):
            await workflow.submit(True, True)

    async def test_lock_held_elsewhere(self, session_factory, client_user, create_order_factory, submission_lock):
        order = await create_order_factory(client_user)
        await submission_lock.acquire(order.id)
        workflow = POConfirmationWorkflow(session_factory, as_caller(client_user), order.id, lock=submission_lock)

        with pytest.raises(SubmissionInProgress):
            await workflow.submit(True, True)

        assert workflow.submitting is False
        assert order.id in submission_lock.held
        assert (await fetch_order(session_factory, order.id)).status == OrderStatus.PENDING_PO

    async def test_lock_released_after_failure(self, session_factory, client_user, create_order_factory,
                                               submission_lock):
        order = await create_order_factory(client_user, status=OrderStatus.CANCELLED)
        workflow = POConfirmationWorkflow(session_factory, as_caller(client_user), order.id, lock=submission_lock)

        with pytest.raises(SubmissionFailed):
            await workflow.submit(True, True)
        assert submission_lock.held == set()

    async def test_notification_failure_keeps_submission(self, session_factory, client_user, create_order_factory,
                                                         monkeypatch, caplog):
        order = await create_order_factory(client_user)

        async def queue_down(factory, caller, order):
            raise TransientWriteFailure("notification queue unavailable")

        monkeypatch.setattr(workflow_module, "enqueue_po_submitted", queue_down)
        workflow = POConfirmationWorkflow(session_factory, as_caller(client_user), order.id)

        with caplog.at_level(logging.ERROR, logger=workflow_module.__name__):
            assert await workflow.submit(True, True) == ConfirmationStep.SUBMITTED

        assert "notification failed" in caplog.text
        saved = await fetch_order(session_factory, order.id)
        assert saved.status == OrderStatus.PENDING_ADMIN_CONFIRMATION

    async def test_second_workflow_sees_submission(self, session_factory, client_user, create_order_factory):
        order = await create_order_factory(client_user)
        await POConfirmationWorkflow(session_factory, as_caller(client_user), order.id).submit(True, True)

        resumed = POConfirmationWorkflow(session_factory, as_caller(client_user), order.id)
        assert await resumed.load() == ConfirmationStep.SUBMITTED

        async with open_session(session_factory, CallerContext.system()) as db:
            count = (await db.execute(select(func.count()).select_from(Notification))).scalar_one()
        assert count == 1
