import pytest

from phone_pos.modules.sales.pricing import AdjustmentDirection, clamp_adjustment, compute_totals


def test_scenario_single_phone_with_taxes():
    t = compute_totals([500.0], [], "5", "7", "0", AdjustmentDirection.DISCOUNT)
    assert t.subtotal == 500
    assert t.gst_amount == pytest.approx(25)
    assert t.pst_amount == pytest.approx(35)
    assert t.grand_total == pytest.approx(560)


def test_subtotal_is_exact_sum_of_parts():
    t = compute_totals([0.1, 0.2], [0.3], "", "")
    assert t.product_subtotal == 0.1 + 0.2
    assert t.service_subtotal == 0.3
    assert t.subtotal == t.product_subtotal + t.service_subtotal


def test_bad_or_empty_inputs_count_as_zero():
    t = compute_totals([100.0], [50.0], "abc", " ", "x", "discount")
    assert t.gst_amount == 0
    assert t.pst_amount == 0
    assert t.adjustment_signed == 0
    assert t.grand_total == 150


def test_discount_and_surcharge_sign():
    d = compute_totals([100.0], [], "10", "0", "20", AdjustmentDirection.DISCOUNT)
    s = compute_totals([100.0], [], "10", "0", "20", AdjustmentDirection.SURCHARGE)
    assert d.adjustment_signed == -20
    assert d.grand_total == pytest.approx(90)
    assert s.adjustment_signed == 20
    assert s.grand_total == pytest.approx(130)
    assert d.pre_adjustment_total == pytest.approx(110)


def test_stored_receive_spelling_means_surcharge():
    assert AdjustmentDirection.parse("receive") is AdjustmentDirection.SURCHARGE
    assert AdjustmentDirection.parse("Surcharge") is AdjustmentDirection.SURCHARGE
    assert AdjustmentDirection.parse("whatever") is AdjustmentDirection.DISCOUNT


def test_grand_total_monotonic_in_taxes_and_discount():
    base = [200.0]
    totals_by_gst = [compute_totals(base, [], str(g), "5").grand_total for g in (0, 1, 5, 13)]
    totals_by_pst = [compute_totals(base, [], "5", str(p)).grand_total for p in (0, 2, 7, 10)]
    totals_by_discount = [compute_totals(base, [], "5", "5", str(d)).grand_total for d in (0, 10, 50, 100)]
    assert totals_by_gst == sorted(totals_by_gst)
    assert totals_by_pst == sorted(totals_by_pst)
    assert totals_by_discount == sorted(totals_by_discount, reverse=True)


def test_taxes_apply_to_subtotal_only():
    t = compute_totals([100.0], [], "10", "10", "50", AdjustmentDirection.SURCHARGE)
    assert t.gst_amount == pytest.approx(10)
    assert t.pst_amount == pytest.approx(10)


def test_clamp_adjustment():
    assert clamp_adjustment("700", subtotal=500, gst_amount=25, pst_amount=35) == "560.00"
    assert clamp_adjustment("560", subtotal=500, gst_amount=25, pst_amount=35) == "560"
    assert clamp_adjustment("12.5", subtotal=500, gst_amount=25, pst_amount=35) == "12.5"
    assert clamp_adjustment("", subtotal=500, gst_amount=25, pst_amount=35) == ""
    # empty cart: anything positive collapses to zero
    assert clamp_adjustment("5", subtotal=0, gst_amount=0, pst_amount=0) == "0.00"
