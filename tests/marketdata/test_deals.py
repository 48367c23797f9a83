from __future__ import annotations

from marketdata.deals import load_deals


def test_default_payload_parses_barriers_and_accrual() -> None:
    deals = {deal.deal_id: deal for deal in load_deals()}

    phoenix = deals["PHX-SPX-01"]
    assert phoenix.underlying_factor == "equity"
    assert phoenix.knock_in_level == 0.70
    assert [fixing.offset for fixing in phoenix.fixings] == [5, 10, 15, 20]
    assert phoenix.accrual.coupon_rate == 0.08

    fx = deals["KOF-EURUSD-02"]
    assert fx.underlying_factor == "fx"
    assert fx.accrual.day_count_basis == 360


def test_rows_with_unknown_factor_or_missing_id_are_skipped() -> None:
    payload = {
        "deals": [
            {"dealId": "A", "factor": "commodity"},
            {"factor": "equity"},
            "junk",
            {
                "dealId": "B",
                "factor": "equity",
                "barriers": {"knockIn": 0.8, "knockOut": [{"offset": 7, "level": 1.1}, {"offset": 3, "level": 1.0}]},
            },
        ]
    }

    deals = load_deals(payload)

    assert [deal.deal_id for deal in deals] == ["B"]
    assert [fixing.offset for fixing in deals[0].fixings] == [3, 7]
    assert deals[0].accrual.day_count_basis == 252
