"""
Sales screen core: cart, pricing, payment split, order numbers, barcode
scanning and the two-phase settlement against the document store.
"""

from .controller import SalesController
from .cart import Cart, PhoneItem, ServiceItem, expand_items
from .pricing import AdjustmentDirection, Totals, compute_totals, clamp_adjustment
from .payments import MiddlemanDirection, PaymentSplit, SplitResult, validate_split, final_amounts
from .order_numbers import OrderNumberAllocator, Auto, UserOverridden
from .barcode import BarcodeResolver, BarcodeScanner, ScanOutcome, ScanResult
from .settlement import SettlementRequest, SettlementService, SettlementPlanner, apply_plan
from .errors import (
    SalesError,
    NotFoundError,
    ValidationRequiredError,
    StoreOperationFailedError,
    Overpayment,
)

__all__ = [
    "SalesController",
    "Cart",
    "PhoneItem",
    "ServiceItem",
    "expand_items",
    "AdjustmentDirection",
    "Totals",
    "compute_totals",
    "clamp_adjustment",
    "MiddlemanDirection",
    "PaymentSplit",
    "SplitResult",
    "validate_split",
    "final_amounts",
    "OrderNumberAllocator",
    "Auto",
    "UserOverridden",
    "BarcodeResolver",
    "BarcodeScanner",
    "ScanOutcome",
    "ScanResult",
    "SettlementRequest",
    "SettlementService",
    "SettlementPlanner",
    "apply_plan",
    "SalesError",
    "NotFoundError",
    "ValidationRequiredError",
    "StoreOperationFailedError",
    "Overpayment",
]
