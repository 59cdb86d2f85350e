from .actors import Actor, Role
from .orders import (
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    StatusHistoryEntry,
)
from .tracking import (
    DeliveryProof,
    DeliveryTracking,
    Location,
    TimelineEntry,
    TrackingStatus,
    TRACKING_SEQUENCE,
    normalize_tracking_status,
)
from .ledger import (
    LedgerAccount,
    LoyaltyTier,
    LoyaltyTransaction,
    Transaction,
    TransactionType,
    LOYALTY_TIERS,
    tier_for,
)
from .promotions import PromoCode
from .events import LedgerEvent, StatusChangedEvent
from .commands import (
    AdjustWalletCommand,
    AdvanceDeliveryCommand,
    AssignDriverCommand,
    CancelOrderCommand,
    Command,
    CompleteDeliveryCommand,
    ConfirmOrderCommand,
    RefundOrderCommand,
    TransitionOrderCommand,
    UpdateLocationCommand,
)

__all__ = [
    # Actors
    "Actor",
    "Role",
    # Orders
    "Order",
    "OrderItem",
    "OrderStatus",
    "PaymentMethod",
    "PaymentStatus",
    "StatusHistoryEntry",
    # Delivery tracking
    "DeliveryProof",
    "DeliveryTracking",
    "Location",
    "TimelineEntry",
    "TrackingStatus",
    "TRACKING_SEQUENCE",
    "normalize_tracking_status",
    # Ledger
    "LedgerAccount",
    "LoyaltyTier",
    "LoyaltyTransaction",
    "Transaction",
    "TransactionType",
    "LOYALTY_TIERS",
    "tier_for",
    # Promotions
    "PromoCode",
    # Events
    "LedgerEvent",
    "StatusChangedEvent",
    # Commands
    "AdjustWalletCommand",
    "AdvanceDeliveryCommand",
    "AssignDriverCommand",
    "CancelOrderCommand",
    "Command",
    "CompleteDeliveryCommand",
    "ConfirmOrderCommand",
    "RefundOrderCommand",
    "TransitionOrderCommand",
    "UpdateLocationCommand",
]
