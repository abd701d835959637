# Overview: Pure profit arithmetic for tractor sales.

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SaleProfit:
    gross_profit_cents: int
    trade_in_cost_cents: int
    net_profit_cents: int


def sale_profit(
    sale_price_cents: int,
    purchase_price_cents: int,
    trade_in_cost_cents: int | None = None,
) -> SaleProfit:
    """
    Profit of selling one tractor.

    gross = sale price - purchase price
    net   = gross - cost basis of the trade-in taken as part payment (if any)
    """
    gross = sale_price_cents - (purchase_price_cents or 0)
    trade_in = trade_in_cost_cents or 0
    return SaleProfit(
        gross_profit_cents=gross,
        trade_in_cost_cents=trade_in,
        net_profit_cents=gross - trade_in,
    )
