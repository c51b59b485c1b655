"""
Idempotency Conformance Tests

INVARIANT: Listing the weekly ladder twice lists it once.

    ensure_weekly_contracts(); ensure_weekly_contracts()
        ≡ ensure_weekly_contracts()

INVARIANT: Settling expired holdings twice settles them once.
"""

from hypothesis import given, settings
from hypothesis import strategies as st
from datetime import datetime
from decimal import Decimal

from tests.conformance import make_desk


class TestContractIdempotency:

    @given(
        st.decimals(min_value=Decimal("250"), max_value=Decimal("50000"),
                    places=2, allow_nan=False, allow_infinity=False),
        st.integers(min_value=1, max_value=3),
    )
    @settings(max_examples=15, deadline=None)
    def test_repeated_listing(self, underlying, repeats):
        """PROPERTY: Only the first call inserts; the ladder stays at ten contracts."""
        desk = make_desk()
        assert len(desk.ensure_weekly_contracts(underlying)) == 10
        for _ in range(repeats):
            assert desk.ensure_weekly_contracts(underlying) == []
        assert len(desk.list_contracts()) == 10


class TestSettlementIdempotency:

    def test_second_pass_settles_nothing(self):
        desk = make_desk()
        desk.record_index_value(9800)
        pe = [c for c in desk.ensure_weekly_contracts() if c.option_type == "PE"][0]
        desk.write_option(pe.id, 1, 10)

        after = datetime(2025, 1, 14)
        assert len(desk.settle_expired(at=after)) == 1
        assert desk.settle_expired(at=after) == []
        assert len(desk.cash_movements()) == 3
