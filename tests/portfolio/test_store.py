from __future__ import annotations

import math

import pytest

from infra.errors import PositionValidationError
from portfolio.store import Position, PositionDraft, PositionStore, RiskFactors


def test_add_fills_instrument_defaults_and_overrides() -> None:
    store = PositionStore()

    bond = store.add(PositionDraft(asset="UST_5Y", quantity=10, price=99.5, instrument_type="bond"))
    option = store.add(
        PositionDraft(
            asset="NDX_CALL",
            quantity=5,
            price=12.0,
            instrument_type="option",
            risk_factors={"vega": 25.0},
        )
    )

    assert bond.risk_factors == RiskFactors(duration=4.0, convexity=20.0)
    assert option.risk_factors.vega == 25.0
    assert option.risk_factors.delta == 0.5
    assert option.risk_factors.theta == -0.02
    assert bond.id != option.id


@pytest.mark.parametrize(
    "draft",
    [
        PositionDraft(asset="  ", quantity=1, price=1),
        PositionDraft(asset="AAPL", quantity=0, price=1),
        PositionDraft(asset="AAPL", quantity=1, price=-5),
        PositionDraft(asset="AAPL", quantity=1, price=1, instrument_type="future"),
        PositionDraft(asset="AAPL", quantity=1, price=1, risk_factors={"rho": 1.0}),
        PositionDraft(asset="AAPL", quantity=1, price=1, risk_factors={"delta": math.inf}),
    ],
)
def test_add_rejects_invalid_drafts(draft: PositionDraft) -> None:
    store = PositionStore()

    with pytest.raises(PositionValidationError):
        store.add(draft)

    assert store.list() == []


def test_remove_unknown_id_is_noop() -> None:
    store = PositionStore()
    position = store.add(PositionDraft(asset="AAPL", quantity=1, price=10.0))

    assert store.remove("pos-999") is False
    assert store.remove(position.id) is True
    assert store.list() == []


def test_seed_data_and_total_value() -> None:
    store = PositionStore.with_seed_data()

    assets = [position.asset for position in store.list()]
    assert assets == ["AAPL", "TSLA", "USD_10Y_BOND", "SPX_OPTION"]
    assert store.total_value() == pytest.approx(20_000_000 + 12_500_000 + 100_000_000 + 15_000)


def test_positions_persist_and_ids_continue(tmp_path) -> None:
    path = tmp_path / "positions.json"
    store = PositionStore(path)
    store.add(PositionDraft(asset="AAPL", quantity=2, price=100.0))
    store.add(PositionDraft(asset="MSFT", quantity=3, price=300.0))

    reloaded = PositionStore(path)
    assert [position.asset for position in reloaded.list()] == ["AAPL", "MSFT"]

    added = reloaded.add(PositionDraft(asset="GOOG", quantity=1, price=150.0))
    assert added.id == "pos-3"


def test_load_skips_rows_that_fail_validation(tmp_path) -> None:
    path = tmp_path / "positions.json"
    path.write_text(
        '{"positions": ['
        '{"id": "pos-1", "asset": "AAPL", "quantity": 1, "price": 0},'
        '{"id": "pos-2", "asset": "TSLA", "quantity": 1, "price": NaN},'
        '{"id": "pos-3", "asset": "MSFT", "quantity": 2, "price": 300.0}'
        "]}"
    )

    store = PositionStore(path)

    assert [position.asset for position in store.list()] == ["MSFT"]


def test_replace_rejects_non_finite_price() -> None:
    store = PositionStore()
    position = store.add(PositionDraft(asset="AAPL", quantity=1, price=10.0))

    with pytest.raises(PositionValidationError):
        store.replace(Position(id=position.id, asset="AAPL", quantity=1, price=math.nan, instrument_type="equity"))

    assert store.get(position.id) == position


def test_corrupt_position_file_starts_empty(tmp_path) -> None:
    path = tmp_path / "positions.json"
    path.write_text("{not json")

    store = PositionStore.with_seed_data(path)

    assert len(store.list()) == 4
