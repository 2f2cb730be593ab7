"""
test_pricing.py — Tests for services/pricing.py

Covers: half-up rounding, response totals, counter-offer line arithmetic
(counter price and discount stay consistent after every edit), best-price
aggregation (minimum, tie-break, absence, idempotence) and the
comparison view ordering.

Called by: pytest
Depends on: autoquote/services/pricing.py
"""

from types import SimpleNamespace

import pytest

from autoquote.services.pricing import (
    compare_responses,
    compute_best_prices,
    counter_total,
    discount_for,
    line_total,
    response_total,
    set_counter_price,
    set_discount_percentage,
)


def _req(rid, supplier_id, parts, status="responded", name=None, **extra):
    data = {"supplier_name": name or f"Fornecedor {supplier_id}", "parts": parts}
    data.update(extra)
    return SimpleNamespace(
        id=rid, supplier_id=supplier_id, status=status, response_data=data, supplier=None
    )


def _part(description, unit_price, available=True, quantity=1):
    return {
        "description": description,
        "code": "",
        "quantity": quantity,
        "available": available,
        "unit_price": unit_price if available else 0,
        "total_price": round(unit_price * quantity, 2) if available else 0,
    }


def _line(original_price, quantity=1, available=True):
    return {
        "original_price": original_price,
        "quantity": quantity,
        "counter_price": original_price,
        "counter_total": original_price * quantity,
        "discount_percentage": 0,
        "available": available,
    }


# ── Totals ──────────────────────────────────────────────────────────


class TestTotals:
    def test_line_total(self):
        assert line_total(100, 2) == 200.0

    def test_line_total_rounds_half_up(self):
        assert line_total(1.005, 1) == 1.01
        assert line_total(2.675, 1) == 2.68

    def test_line_total_none_safe(self):
        assert line_total(None, 3) == 0.0

    def test_response_total_only_available(self):
        parts = [_part("A", 100, quantity=2), _part("B", 50, available=False)]
        assert response_total(parts) == 200.0

    def test_response_total_empty(self):
        assert response_total([]) == 0.0


# ── Counter-offer lines ─────────────────────────────────────────────


class TestCounterLines:
    def test_counter_price_derives_discount(self):
        line = set_counter_price(_line(100, quantity=2), 80)
        assert line["counter_price"] == 80.0
        assert line["counter_total"] == 160.0
        assert line["discount_percentage"] == 20

    def test_discount_derives_counter_price(self):
        line = set_discount_percentage(_line(100, quantity=3), 15)
        assert line["counter_price"] == 85.0
        assert line["counter_total"] == 255.0
        assert line["discount_percentage"] == 15

    def test_discount_rounds_half_up(self):
        assert discount_for(200, 199) == 1  # 0.5% -> 1
        assert discount_for(300, 299) == 0  # 0.33% -> 0

    def test_zero_original_price(self):
        assert discount_for(0, 10) == 0

    def test_negative_counter_price_clamped(self):
        assert set_counter_price(_line(50), -5)["counter_price"] == 0.0

    def test_price_above_original_is_negative_discount(self):
        assert set_counter_price(_line(100), 110)["discount_percentage"] == -10

    @pytest.mark.parametrize(
        "original,quantity,edits",
        [
            (100, 2, [("price", 80), ("discount", 25), ("price", 99.99)]),
            (33.33, 3, [("discount", 15), ("price", 30), ("discount", 7.5)]),
            (1250.0, 1, [("discount", 12.345), ("price", 1000)]),
        ],
    )
    def test_views_agree_after_every_edit(self, original, quantity, edits):
        line = _line(original, quantity)
        for kind, value in edits:
            if kind == "price":
                set_counter_price(line, value)
            else:
                set_discount_percentage(line, value)
            assert line["counter_total"] == line_total(line["counter_price"], quantity)
            assert line["discount_percentage"] == discount_for(original, line["counter_price"])

    def test_counter_total_skips_unavailable_and_rejected(self):
        lines = [
            dict(_line(100), counter_total=80, accepted=True),
            dict(_line(50), counter_total=40, accepted=False),
            dict(_line(10, available=False), counter_total=0),
        ]
        assert counter_total(lines) == 120.0
        assert counter_total(lines, accepted_only=True) == 80.0


# ── Best prices ─────────────────────────────────────────────────────


class TestBestPrices:
    def _parts(self):
        return [{"description": "FAROL", "purchased": False}, {"description": "GRADE", "purchased": True}]

    def test_minimum_available_price_wins(self):
        requests = [
            _req(1, 10, [_part("FAROL", 300), _part("GRADE", 90)]),
            _req(2, 20, [_part("FAROL", 250), _part("GRADE", 95)]),
        ]
        rows = {r["description"]: r for r in compute_best_prices(self._parts(), requests)}
        assert rows["FAROL"]["supplier_id"] == 20
        assert rows["FAROL"]["unit_price"] == 250.0
        assert rows["GRADE"]["supplier_id"] == 10
        assert rows["GRADE"]["purchased"] is True
        assert rows["FAROL"]["purchased"] is False

    def test_tie_keeps_first_request(self):
        requests = [
            _req(1, 10, [_part("FAROL", 250)]),
            _req(2, 20, [_part("FAROL", 250)]),
        ]
        (row,) = compute_best_prices(self._parts(), requests)
        assert row["request_id"] == 1

    def test_unavailable_and_unanswered_parts_are_absent(self):
        requests = [
            _req(1, 10, [_part("FAROL", 0, available=False)]),
            _req(2, 20, [_part("GRADE", 100)], status="sent"),
        ]
        assert compute_best_prices(self._parts(), requests) == []

    def test_zero_price_ignored(self):
        requests = [_req(1, 10, [_part("FAROL", 0)]), _req(2, 20, [_part("FAROL", 10)])]
        (row,) = compute_best_prices(self._parts(), requests)
        assert row["supplier_id"] == 20

    def test_part_index_and_total(self):
        requests = [_req(1, 10, [_part("GRADE", 90), _part("FAROL", 120.5, quantity=2)])]
        row = next(r for r in compute_best_prices(self._parts(), requests) if r["description"] == "FAROL")
        assert row["part_index"] == 1
        assert row["total_price"] == 241.0

    def test_idempotent(self):
        requests = [
            _req(1, 10, [_part("FAROL", 300), _part("GRADE", 90)]),
            _req(2, 20, [_part("FAROL", 250), _part("GRADE", 90)]),
            _req(3, 30, [_part("FAROL", 250), _part("GRADE", 89.99)]),
        ]
        first = compute_best_prices(self._parts(), requests)
        second = compute_best_prices(self._parts(), requests)
        assert first == second
        assert [(r["description"], r["supplier_id"]) for r in first] == [("FAROL", 20), ("GRADE", 30)]


# ── Comparison ──────────────────────────────────────────────────────


class TestCompareResponses:
    def _requests(self):
        return [
            _req(1, 10, [_part("A", 100), _part("B", 0, available=False)], total_price=100),
            _req(2, 20, [_part("A", 120), _part("B", 50)], total_price=170),
            _req(3, 30, [_part("A", 90), _part("B", 0, available=False)], total_price=90),
            _req(4, 40, [_part("A", 1)], status="sent"),
        ]

    def test_default_sort_by_available_then_total(self):
        rows = compare_responses(self._requests())
        assert [r["request_id"] for r in rows] == [2, 3, 1]
        assert rows[0]["available_count"] == 2

    def test_sort_by_total(self):
        rows = compare_responses(self._requests(), "total")
        assert [r["request_id"] for r in rows] == [3, 1, 2]

    def test_only_responded(self):
        assert all(r["request_id"] != 4 for r in compare_responses(self._requests()))
