from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.future import select
from typing import Optional, List

from po_confirmation.api.deps import get_db, get_submission_lock
from po_confirmation.authz.context import CallerContext
from po_confirmation.db.routines import accept_quote_and_deduct_credit
from po_confirmation.db.session import get_session_factory
from po_confirmation.models.base import utcnow
from po_confirmation.models.order import Order
from po_confirmation.schemas.order import AcceptQuoteIn, OrderCreate, OrderOut, OrderUpdate, PaymentSubmission
from po_confirmation.schemas.po_confirmation import POConfirmationIn, POConfirmationOut
from po_confirmation.services.po_confirmation import POConfirmationWorkflow
from po_confirmation.core.security import get_current_caller
from po_confirmation.core.audit_log import log_audit
from po_confirmation.core.auth_utils import check_order_visible, check_not_found, filter_visible_orders
from po_confirmation.core.response_builders import (
    build_order_response,
    build_order_response_list,
    build_po_confirmation_response,
)
from po_confirmation.core.enums import AuditAction, OrderStatus
from po_confirmation.core.errors import ConfirmationIncomplete, SubmissionFailed, SubmissionInProgress
from po_confirmation.utils.locks import SubmissionLock

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("/accept-quote", response_model=OrderOut)
async def accept_quote(
    payload: AcceptQuoteIn,
    db: AsyncSession = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
):
    order = await accept_quote_and_deduct_credit(db, payload.quote_id, payload.supplier_id, payload.amount)
    log_audit(db, caller.principal_id, AuditAction.ACCEPT_QUOTE, payload)
    await db.commit()
    return build_order_response(order)


@router.post("/", response_model=OrderOut)
async def create_order(
    payload: OrderCreate,
    db: AsyncSession = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
):
    """Direct insert, used when no quote is involved. Row policies decide."""
    client_id = payload.client_id if payload.client_id is not None else caller.principal_id
    order = Order(
        client_id=client_id,
        supplier_id=payload.supplier_id,
        quote_id=payload.quote_id,
        amount=payload.amount,
        status=OrderStatus.DRAFT,
    )
    db.add(order)
    log_audit(db, caller.principal_id, AuditAction.CREATE_ORDER, payload)
    await db.commit()
    return build_order_response(order)


@router.get("/", response_model=List[OrderOut])
async def list_orders(
    status: Optional[OrderStatus] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
):
    q = filter_visible_orders(select(Order), caller)
    if status:
        q = q.where(Order.status == status)

    q = q.order_by(Order.id).limit(limit).offset(offset)
    res = await db.execute(q)
    return build_order_response_list(res.scalars().all())


@router.get("/{order_id}", response_model=OrderOut)
async def get_order(
    order_id: int,
    db: AsyncSession = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
):
    res = await db.execute(select(Order).where(Order.id == order_id))
    order = res.scalars().first()
    check_not_found(order, "Order", order_id)
    check_order_visible(order, caller)
    return build_order_response(order)


@router.patch("/{order_id}", response_model=OrderOut)
async def update_order(
    order_id: int,
    payload: OrderUpdate,
    db: AsyncSession = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
):
    """Direct client write. Ownership, status and column rules are enforced
    by the store when the row is flushed."""
    res = await db.execute(select(Order).where(Order.id == order_id))
    order = res.scalars().first()
    check_not_found(order, "Order", order_id)

    changes = payload.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(order, field, value)

    log_audit(db, caller.principal_id, AuditAction.UPDATE_ORDER, {"order_id": order_id, **changes})
    await db.commit()
    return build_order_response(order)


@router.post("/{order_id}/payment", response_model=OrderOut)
async def submit_payment(
    order_id: int,
    payload: PaymentSubmission,
    db: AsyncSession = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
):
    res = await db.execute(select(Order).where(Order.id == order_id))
    order = res.scalars().first()
    check_not_found(order, "Order", order_id)
    check_order_visible(order, caller)

    order.payment_reference = payload.payment_reference
    order.payment_notes = payload.payment_notes
    order.payment_submitted_at = utcnow()

    log_audit(db, caller.principal_id, AuditAction.SUBMIT_PAYMENT, {"order_id": order_id, **payload.model_dump()})
    await db.commit()
    return build_order_response(order)


@router.get("/{order_id}/po-confirmation", response_model=POConfirmationOut)
async def get_po_confirmation(
    order_id: int,
    caller: CallerContext = Depends(get_current_caller),
    factory: async_sessionmaker = Depends(get_session_factory),
):
    workflow = POConfirmationWorkflow(factory, caller, order_id)
    step = await workflow.load()
    return build_po_confirmation_response(workflow.order, step)


@router.post("/{order_id}/po-confirmation", response_model=POConfirmationOut)
async def submit_po_confirmation(
    order_id: int,
    payload: POConfirmationIn,
    caller: CallerContext = Depends(get_current_caller),
    factory: async_sessionmaker = Depends(get_session_factory),
    lock: Optional[SubmissionLock] = Depends(get_submission_lock),
):
    workflow = POConfirmationWorkflow(factory, caller, order_id, lock=lock)
    try:
        step = await workflow.submit(payload.not_test_order_confirmed, payload.payment_terms_confirmed)
    except ConfirmationIncomplete as e:
        raise HTTPException(status_code=422, detail=str(e))
    except SubmissionInProgress as e:
        raise HTTPException(status_code=409, detail=str(e))
    except SubmissionFailed as e:
        raise HTTPException(status_code=503 if e.retryable else 403, detail=str(e))

    return build_po_confirmation_response(workflow.order, step)
