"""Read-side visibility helpers; writes are decided by the store itself."""
from fastapi import HTTPException
from typing import Optional
from po_confirmation.authz.context import CallerContext
from po_confirmation.core.enums import UserRole
from po_confirmation.models.order import Order


def filter_visible_orders(query, caller: CallerContext):

    if caller.role != UserRole.ADMIN:
        return query.where(Order.client_id == caller.principal_id)
    return query


def check_order_visible(order: Order, caller: CallerContext) -> None:

    if caller.role != UserRole.ADMIN and order.client_id != caller.principal_id:
        raise HTTPException(
            status_code=403,
            detail="Forbidden: You can only access your own orders"
        )


def check_not_found(item, resource_name: str = "Resource", resource_id: Optional[int] = None) -> None:

    if not item:
        if resource_id:
            raise HTTPException(
                status_code=404,
                detail=f"{resource_name} with id {resource_id} not found"
            )
        raise HTTPException(status_code=404, detail=f"{resource_name} not found")
