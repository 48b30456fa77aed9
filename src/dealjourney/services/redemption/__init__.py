"""Redemption ledger exports."""

from .ledger import REDEMPTION_RULES, RedemptionLedger, cooldown_for

__all__ = ["REDEMPTION_RULES", "RedemptionLedger", "cooldown_for"]
