from __future__ import annotations

import pytest

from kim_paths.core.utils.ordering import OrderedPair, reconcile_with_pool, sort_pair

LOW = "0x1111111111111111111111111111111111111111"
HIGH = "0xbBbBBBBbbBBBbbbBbbBbbbbBBbBbbbbBbBbbBBbB"


class TestSortPair:
    def test_already_ordered(self):
        assert sort_pair(LOW, HIGH, 1, 2) == OrderedPair(LOW, HIGH, 1, 2)

    @pytest.mark.parametrize(
        ("amount_a", "amount_b"), [(1, 2), (0, 10**30), (2**128 - 1, 5)]
    )
    def test_higher_first_is_swapped(self, amount_a, amount_b):
        assert sort_pair(HIGH, LOW, amount_a, amount_b) == OrderedPair(
            LOW, HIGH, amount_b, amount_a
        )

    def test_case_insensitive(self):
        pair = sort_pair(HIGH.lower(), LOW, 1, 2)
        assert pair.token0 == LOW
        assert pair.token1 == HIGH


class TestReconcileWithPool:
    def test_pool_token0_matches_first(self):
        assert reconcile_with_pool(LOW, HIGH, 1, 2, LOW.lower()) == OrderedPair(
            LOW, HIGH, 1, 2
        )

    def test_pool_token0_is_second(self):
        assert reconcile_with_pool(LOW, HIGH, 1, 2, HIGH) == OrderedPair(
            HIGH, LOW, 2, 1
        )
