from enum import Enum


class UserRole(str, Enum):
    CLIENT = "CLIENT"
    SUPPLIER = "SUPPLIER"
    ADMIN = "ADMIN"

    def __str__(self):
        return self.value


class UserStatus(str, Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    DEACTIVATED = "DEACTIVATED"

    def __str__(self):
        return self.value


class KycStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

    def __str__(self):
        return self.value


class OrderStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING_PO = "PENDING_PO"
    PENDING_ADMIN_CONFIRMATION = "PENDING_ADMIN_CONFIRMATION"
    CONFIRMED = "CONFIRMED"
    REJECTED = "REJECTED"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"

    def __str__(self):
        return self.value


class TrustLevel(str, Enum):
    SYSTEM = "system"
    SESSION = "session"

    def __str__(self):
        return self.value


class WriteCommand(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"

    def __str__(self):
        return self.value


class GuardKind(str, Enum):
    POLICY = "policy"
    TRIGGER = "trigger"

    def __str__(self):
        return self.value


class AuditAction(str, Enum):
    REGISTER = "register"
    LOGIN = "login"
    CREATE_ORDER = "create_order"
    ACCEPT_QUOTE = "accept_quote"
    UPDATE_ORDER = "update_order"
    SUBMIT_PAYMENT = "submit_payment"
    SUBMIT_PO_CONFIRMATION = "submit_po_confirmation"
    SET_ORDER_STATUS = "set_order_status"
    UPDATE_PROFILE = "update_profile"

    def __str__(self):
        return self.value


class ConfirmationStep(str, Enum):
    UNCONFIRMED = "unconfirmed"
    SUBMITTED = "submitted"
    ADMIN_REVIEWED = "admin_reviewed"

    def __str__(self):
        return self.value
