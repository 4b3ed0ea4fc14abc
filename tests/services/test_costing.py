"""Tests for the weighted-average cost arithmetic."""

import pytest

from upholstery_tracker.services import costing
from upholstery_tracker.services.costing import Shortfall


class TestBlendAverage:
    def test_purchase_blends_into_average(self):
        quantity, avg = costing.blend_average(10, 5.0, 10, 40.0)
        assert quantity == 20
        assert avg == pytest.approx(4.5)

    def test_first_purchase_sets_average(self):
        assert costing.blend_average(0, 0.0, 8, 24.0) == (8, 3.0)

    def test_two_purchases_equal_one_combined(self):
        q1, c1 = costing.blend_average(10, 5.0, 4, 18.0)
        q2, c2 = costing.blend_average(q1, c1, 6, 33.0)

        q_all, c_all = costing.blend_average(10, 5.0, 10, 51.0)

        assert q2 == pytest.approx(q_all)
        assert c2 == pytest.approx(c_all)

    def test_empty_result_has_zero_average(self):
        assert costing.blend_average(0, 0.0, 0, 0.0) == (0.0, 0.0)


class TestRedistributeWaste:
    @pytest.mark.parametrize(
        "quantity,avg,wasted",
        [(20, 4.5, 5), (3, 7.25, 1.5), (100, 0.37, 99.9)],
    )
    def test_total_value_is_conserved(self, quantity, avg, wasted):
        new_quantity, new_avg = costing.redistribute_waste(quantity, avg, wasted)
        assert new_quantity == pytest.approx(quantity - wasted)
        assert new_quantity * new_avg == pytest.approx(quantity * avg)

    def test_wasting_everything_clears_the_layer(self):
        assert costing.redistribute_waste(5, 6.0, 5) == (0.0, 0.0)


class TestRemoveAtAverage:
    def test_returns_removed_value(self):
        quantity, removed = costing.remove_at_average(12, 6.0, 2)
        assert quantity == 10
        assert removed == pytest.approx(12.0)

    def test_float_dust_snaps_to_zero(self):
        quantity, _ = costing.remove_at_average(0.3, 1.0, 0.1 + 0.2)
        assert quantity == 0.0


def test_recipe_cost_ignores_unknown_materials():
    lines = [(1, 3.0), (2, 1.0), (99, 5.0)]
    assert costing.recipe_cost(lines, {1: 6.0, 2: 12.5}) == pytest.approx(30.5)


def test_find_shortfalls_reports_every_short_line():
    lines = [(1, 3.0), (2, 1.0), (3, 4.0)]
    stock = {1: ("Black Vinyl", 1.0), 2: ("Foam", 5.0)}

    shortfalls = costing.find_shortfalls(lines, stock, "Unknown material")

    assert shortfalls == [
        Shortfall(1, "Black Vinyl", 3.0, 1.0),
        Shortfall(3, "Unknown material", 4.0, 0.0),
    ]
    assert shortfalls[0].missing == pytest.approx(2.0)


def test_margin_ratio():
    assert costing.margin_ratio(200.0, 150.0) == pytest.approx(0.25)
    assert costing.margin_ratio(0.0, 10.0) is None


def test_find_shortfalls_sums_repeated_materials():
    lines = [(1, 6.0), (2, 1.0), (1, 6.0)]
    stock = {1: ("Black Vinyl", 10.0), 2: ("Foam", 5.0)}

    assert costing.merge_lines(lines) == [(1, 12.0), (2, 1.0)]
    assert costing.find_shortfalls(lines, stock, "Unknown material") == [
        Shortfall(1, "Black Vinyl", 12.0, 10.0)
    ]
