from po_confirmation.models.notification import Notification
from po_confirmation.models.order import Order
from po_confirmation.models.user import User
from po_confirmation.core.enums import ConfirmationStep
from po_confirmation.schemas.notification import NotificationOut
from po_confirmation.schemas.order import OrderOut
from po_confirmation.schemas.po_confirmation import POConfirmationOut
from po_confirmation.schemas.user import UserOut


def build_order_response(order: Order) -> OrderOut:
    return OrderOut(
        id=order.id,
        client_id=order.client_id,
        supplier_id=order.supplier_id,
        quote_id=order.quote_id,
        status=order.status,
        amount=order.amount,
        not_test_order_confirmed_at=order.not_test_order_confirmed_at,
        payment_terms_confirmed_at=order.payment_terms_confirmed_at,
        client_po_confirmation_submitted_at=order.client_po_confirmation_submitted_at,
        client_po_uploaded=order.client_po_uploaded,
        payment_reference=order.payment_reference,
        payment_notes=order.payment_notes,
        payment_submitted_at=order.payment_submitted_at,
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


def build_user_response(user: User) -> UserOut:
    return UserOut(
        id=user.id,
        username=user.username,
        role=user.role,
        verified=user.verified,
        status=user.status,
        kyc_status=user.kyc_status,
        public_id=user.public_id,
        date_joined=user.date_joined,
        credit_limit=user.credit_limit,
        credit_used=user.credit_used,
        current_balance=user.current_balance,
        rating=user.rating,
        full_name=user.full_name,
        company_name=user.company_name,
        phone=user.phone,
    )


def build_po_confirmation_response(order: Order, step: ConfirmationStep) -> POConfirmationOut:
    return POConfirmationOut(
        order_id=order.id,
        step=step,
        status=order.status,
        not_test_order_confirmed_at=order.not_test_order_confirmed_at,
        payment_terms_confirmed_at=order.payment_terms_confirmed_at,
        client_po_confirmation_submitted_at=order.client_po_confirmation_submitted_at,
    )


def build_notification_response(notification: Notification) -> NotificationOut:
    return NotificationOut(
        id=notification.id,
        type=notification.type,
        title_key=notification.title_key,
        message_key=notification.message_key,
        action_url=notification.action_url,
        read=notification.read,
        created_at=notification.created_at,
    )


def build_order_response_list(orders: list) -> list:
    return [build_order_response(order) for order in orders]


def build_notification_response_list(notifications: list) -> list:
    return [build_notification_response(n) for n in notifications]
