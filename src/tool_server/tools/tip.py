"""Tip calculator (no external dependency)."""

from __future__ import annotations

from ..schemas import TipInput, TipOutput
from ..settings import ToolServerSettings


def calculate_tip(payload: TipInput, settings: ToolServerSettings, _call_id: str) -> TipOutput:
    tip_percentage = payload.tip_percentage
    if tip_percentage is None:
        tip_percentage = settings.default_tip_percentage
    tip_amount = payload.bill_amount * tip_percentage / 100
    return TipOutput(
        original_bill=payload.bill_amount,
        tip_percentage=tip_percentage,
        tip_amount=round(tip_amount, 2),
        total_amount=round(payload.bill_amount + tip_amount, 2),
    )
