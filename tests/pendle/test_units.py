"""Tests for unit and yield helpers."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from src.pendle.units import days_to_maturity, fixed_yield, from_base_units, to_base_units

NOW = datetime(2025, 1, 1, tzinfo=timezone.utc)


class TestDaysToMaturity:
    def test_future(self):
        maturity = int(NOW.timestamp()) + 36 * 3600
        assert days_to_maturity(maturity, NOW) == pytest.approx(1.5)

    def test_past_floors_at_zero(self):
        assert days_to_maturity(int(NOW.timestamp()) - 10, NOW) == 0


class TestFixedYield:
    def test_formula(self):
        # ((1 - 0.95) / 0.95) * (365 / 73)
        assert fixed_yield(0.95, 73) == pytest.approx(0.05 / 0.95 * 5)

    @pytest.mark.parametrize("price,days", [(1.0, 30), (1.02, 30), (0.9, 0), (0.9, -1), (0.0, 30)])
    def test_zero_cases(self, price, days):
        assert fixed_yield(price, days) == 0


class TestBaseUnits:
    def test_usdc(self):
        assert to_base_units(35, 6) == 35_000_000
        assert to_base_units("12.345678", 6) == 12_345_678

    def test_truncates_extra_precision(self):
        assert to_base_units(Decimal("1.0000009"), 6) == 1_000_000

    def test_float_input_uses_decimal_repr(self):
        assert to_base_units(0.1, 18) == 10**17

    def test_round_trip_value(self):
        assert from_base_units(1_500_000, 6) == 1.5
        assert from_base_units(0, 18) == 0.0
