"""
modules/sales/order_numbers.py

Live "next order number" for the sales screen.

The allocator listens to the OrderNumbers collection; every snapshot
recomputes max(orderNumber) + 1 over the non-custom allocations. The held
value is tagged: an `Auto` value follows the feed, a `UserOverridden` value
(the user typed their own number) is left alone until `reset_to_auto()`.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Union

from PySide6.QtCore import QObject, Signal, Slot

from ...constants import COL_ORDER_NUMBERS, ORDER_PREFIX, ORDER_LOADING
from ...database.document_store import DocumentStore, ListenerRegistration
from ...utils.validators import as_integer

_log = logging.getLogger(__name__)

# older allocations used other field names; first integer-valued one wins
ORDER_NUMBER_FIELDS = ("orderNumber", "order_number", "number", "value")

_TRAILING_INT = re.compile(r"(\d+)\s*$")


def order_number_of(data: Mapping) -> Optional[int]:
    for name in ORDER_NUMBER_FIELDS:
        n = as_integer(data.get(name))
        if n is not None:
            return n
    return None


def next_order_number(documents: Iterable[Mapping]) -> int:
    """
    Highest order number among non-custom allocations, plus one.
    Custom allocations never move the sequence, whatever their value.
    """
    highest = 0
    for data in documents:
        if not data or data.get("isCustom") is True:
            continue
        n = order_number_of(data)
        if n is not None and n > highest:
            highest = n
    return highest + 1


def format_order_number(n: int) -> str:
    return f"{ORDER_PREFIX}{n}"


def parse_order_number(text: str) -> Optional[int]:
    """'SO-42' -> 42, '42' -> 42; None when there is no trailing number."""
    m = _TRAILING_INT.search(str(text or ""))
    return int(m.group(1)) if m else None


@dataclass(frozen=True)
class Auto:
    value: str


@dataclass(frozen=True)
class UserOverridden:
    value: str


OrderNumberValue = Union[Auto, UserOverridden]


class OrderNumberAllocator(QObject):
    orderNumberChanged = Signal(str)

    # store callbacks can arrive on worker threads; hop to ours first
    _snapshotReceived = Signal(object, object)

    def __init__(self, store: DocumentStore, parent: QObject | None = None):
        super().__init__(parent)
        self.store = store
        self._registration: ListenerRegistration | None = None
        self._value: OrderNumberValue = Auto(ORDER_LOADING)
        self._last_auto = ORDER_LOADING
        self._snapshotReceived.connect(self._apply_snapshot)

    # ---- lifecycle ----

    def start(self) -> None:
        if self._registration is not None:
            return
        self._registration = self.store.on_snapshot(
            self.store.collection(COL_ORDER_NUMBERS),
            self._snapshotReceived.emit,
        )

    def stop(self) -> None:
        if self._registration is not None:
            self._registration.remove()
            self._registration = None

    # ---- state ----

    @property
    def state(self) -> OrderNumberValue:
        return self._value

    @property
    def value(self) -> str:
        return self._value.value

    @property
    def last_auto(self) -> str:
        return self._last_auto

    @property
    def is_custom(self) -> bool:
        return isinstance(self._value, UserOverridden)

    def set_user_value(self, text: str) -> None:
        """The user typed into the order-number field."""
        if text != self._last_auto and text != ORDER_LOADING:
            self._set(UserOverridden(text))
        else:
            self._set(Auto(self._last_auto))

    def reset_to_auto(self) -> None:
        self._set(Auto(self._last_auto))

    def _set(self, value: OrderNumberValue) -> None:
        changed = value.value != self._value.value
        self._value = value
        if changed:
            self.orderNumberChanged.emit(value.value)

    # ---- feed ----

    @Slot(object, object)
    def _apply_snapshot(self, snapshots, error) -> None:
        if error is not None or snapshots is None:
            _log.warning("Order number feed unavailable, falling back to start: %s", error)
            nxt = 1
        else:
            nxt = next_order_number(s.data for s in snapshots)
        self._last_auto = format_order_number(nxt)
        if isinstance(self._value, Auto):
            self._set(Auto(self._last_auto))
