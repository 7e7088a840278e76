import pytest

from phone_pos.constants import COL_ORDER_NUMBERS
from phone_pos.modules.sales.order_numbers import (
    Auto,
    OrderNumberAllocator,
    UserOverridden,
    format_order_number,
    next_order_number,
    parse_order_number,
)


# --------------------------- pure sequence ---------------------------

def test_custom_allocations_are_ignored():
    docs = [
        {"orderNumber": 3, "isCustom": True},
        {"orderNumber": 5, "isCustom": False},
        {"orderNumber": 7},
    ]
    assert next_order_number(docs) == 8


def test_custom_filter_is_not_about_magnitude():
    docs = [{"orderNumber": 50, "isCustom": True}, {"orderNumber": 2}]
    assert next_order_number(docs) == 3


def test_empty_feed_starts_at_one():
    assert next_order_number([]) == 1
    assert next_order_number([{"orderNumber": "SO-9"}, {"orderNumber": 1.5}, {"orderNumber": True}]) == 1


def test_fallback_field_names():
    docs = [{"order_number": 4}, {"number": 6.0}, {"value": 2}]
    assert next_order_number(docs) == 7


@pytest.mark.parametrize("text, n", [("SO-42", 42), ("42", 42), ("X 7 ", 7), ("abc", None), ("", None)])
def test_parse_order_number(text, n):
    assert parse_order_number(text) == n


# --------------------------- live allocator ---------------------------

@pytest.fixture
def allocator(qapp, store):
    a = OrderNumberAllocator(store)
    a.start()
    yield a
    a.stop()


def test_allocator_follows_feed(allocator, store):
    assert allocator.state == Auto("SO-1")
    col = store.collection(COL_ORDER_NUMBERS)
    store.add(col, {"orderNumber": 5, "isCustom": False})
    assert allocator.value == "SO-6"
    store.add(col, {"orderNumber": 99, "isCustom": True})
    assert allocator.value == "SO-6"


def test_user_override_survives_feed_until_reset(allocator, store):
    allocator.set_user_value("VIP-1")
    assert allocator.state == UserOverridden("VIP-1")
    assert allocator.is_custom

    store.add(store.collection(COL_ORDER_NUMBERS), {"orderNumber": 10})
    assert allocator.value == "VIP-1"
    assert allocator.last_auto == "SO-11"

    allocator.reset_to_auto()
    assert allocator.state == Auto("SO-11")


def test_typing_the_auto_value_or_sentinel_is_not_custom(allocator):
    allocator.set_user_value(allocator.last_auto)
    assert not allocator.is_custom
    allocator.set_user_value("Loading...")
    assert not allocator.is_custom


def test_signal_emitted_on_change(qtbot, allocator, store):
    with qtbot.waitSignal(allocator.orderNumberChanged, timeout=1000) as blocker:
        store.add(store.collection(COL_ORDER_NUMBERS), {"orderNumber": 1})
    assert blocker.args == [format_order_number(2)]


def test_feed_error_falls_back_without_overwriting_custom(allocator):
    allocator._apply_snapshot(None, RuntimeError("offline"))
    assert allocator.value == "SO-1"

    allocator.set_user_value("MINE")
    allocator._apply_snapshot(None, RuntimeError("offline"))
    assert allocator.value == "MINE"


def test_stop_detaches_listener(allocator, store):
    allocator.stop()
    store.add(store.collection(COL_ORDER_NUMBERS), {"orderNumber": 30})
    assert allocator.value == "SO-1"
