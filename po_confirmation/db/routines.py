"""Trusted routines: multi-row writes that run with system trust.

Each routine runs inside the caller's transaction. Whatever the caller had
pending is flushed under the caller's own trust first; only the routine's own
writes are flushed as system. Routines check the caller's identity and role
themselves, since row policies no longer apply to their writes.
"""
import logging
import secrets
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from po_confirmation.authz.context import CallerContext
from po_confirmation.core.enums import OrderStatus, UserRole
from po_confirmation.core.errors import AuthorizationDenied, CreditLimitExceeded, OrderNotFound
from po_confirmation.db.guard import CALLER_KEY
from po_confirmation.db.session import caller_of
from po_confirmation.models.base import utcnow
from po_confirmation.models.order import Order
from po_confirmation.models.user import User

logger = logging.getLogger(__name__)

PO_CONFIRMABLE_STATUSES = frozenset({OrderStatus.DRAFT, OrderStatus.PENDING_PO})

PUBLIC_ID_PREFIX = {
    UserRole.CLIENT: "CLT",
    UserRole.SUPPLIER: "SUP",
    UserRole.ADMIN: "ADM",
}


@asynccontextmanager
async def security_definer(session: AsyncSession) -> AsyncIterator[CallerContext]:
    caller = caller_of(session)
    if caller is None:
        raise AuthorizationDenied("session has no caller context")

    await session.flush()
    session.info[CALLER_KEY] = caller.elevated()
    try:
        yield caller
        await session.flush()
    finally:
        session.info[CALLER_KEY] = caller


async def _fresh_role(session: AsyncSession, principal_id: Optional[int]) -> Optional[UserRole]:
    if principal_id is None:
        return None
    res = await session.execute(select(User.role).where(User.id == principal_id))
    return res.scalar_one_or_none()


async def _locked_order(session: AsyncSession, order_id: int) -> Order:
    res = await session.execute(
        select(Order)
        .where(Order.id == order_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    order = res.scalars().first()
    if order is None:
        raise OrderNotFound(f"Order with id {order_id} not found")
    return order


def new_public_id(role: UserRole) -> str:
    return f"{PUBLIC_ID_PREFIX.get(role, 'USR')}-{secrets.token_hex(4).upper()}"


async def register_user(
    session: AsyncSession,
    username: str,
    password_hash: str,
    role: UserRole = UserRole.CLIENT,
    **profile,
) -> User:
    async with security_definer(session):
        user = User(
            username=username,
            password_hash=password_hash,
            role=role,
            public_id=new_public_id(role),
            date_joined=utcnow(),
            **profile,
        )
        session.add(user)
    logger.info(f"Registered {role} user {username}")
    return user


async def accept_quote_and_deduct_credit(
    session: AsyncSession,
    quote_id: str,
    supplier_id: Optional[int],
    amount: float,
) -> Order:
    if amount <= 0:
        raise ValueError("amount must be positive")

    async with security_definer(session) as caller:
        if caller.principal_id is None:
            raise AuthorizationDenied("authentication required", "orders", "INSERT")

        res = await session.execute(
            select(User)
            .where(User.id == caller.principal_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        client = res.scalars().first()
        if client is None or client.role != UserRole.CLIENT:
            raise AuthorizationDenied("only clients can accept quotes", "orders", "INSERT")

        if client.credit_used + amount > client.credit_limit:
            raise CreditLimitExceeded(
                f"Quote {quote_id} needs {amount:.2f}, available credit is "
                f"{client.credit_limit - client.credit_used:.2f}"
            )

        order = Order(
            client_id=client.id,
            supplier_id=supplier_id,
            quote_id=quote_id,
            amount=amount,
            status=OrderStatus.PENDING_PO,
        )
        session.add(order)
        client.credit_used = client.credit_used + amount
        client.current_balance = client.current_balance - amount

    logger.info(f"Client {caller.principal_id} accepted quote {quote_id} for {amount:.2f}")
    return order


async def submit_client_po_confirmation(
    session: AsyncSession,
    order_id: int,
    confirmed_at: datetime,
) -> Order:
    """Record both client confirmations and hand the order to admin review.

    All three timestamps get the same instant.
    """
    async with security_definer(session) as caller:
        order = await _locked_order(session, order_id)
        if caller.principal_id is None or order.client_id != caller.principal_id:
            raise AuthorizationDenied("only the owning client can confirm this PO", "orders", "UPDATE")
        if order.status not in PO_CONFIRMABLE_STATUSES:
            raise AuthorizationDenied(f"order is not awaiting PO confirmation (status {order.status})", "orders", "UPDATE")

        order.not_test_order_confirmed_at = confirmed_at
        order.payment_terms_confirmed_at = confirmed_at
        order.client_po_confirmation_submitted_at = confirmed_at
        order.status = OrderStatus.PENDING_ADMIN_CONFIRMATION
    return order


async def admin_set_order_status(session: AsyncSession, order_id: int, status: OrderStatus) -> Order:
    async with security_definer(session) as caller:
        if await _fresh_role(session, caller.principal_id) != UserRole.ADMIN:
            raise AuthorizationDenied("admin access required", "orders", "UPDATE")
        order = await _locked_order(session, order_id)
        old_status = order.status
        order.status = status
    logger.info(f"Admin {caller.principal_id} moved order {order_id} from {old_status} to {status}")
    return order
