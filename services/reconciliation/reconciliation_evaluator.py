"""
Cash-Up Engine - Reconciliation Evaluator
=========================================
Compares the evidence net total with the cashier's declared total.
"""

from dataclasses import dataclass

from core.constants import BALANCE_TOLERANCE


@dataclass(frozen=True)
class ReconciliationResult:
    net_total: float
    cashup_total: float
    delta: float
    balanced: bool


def evaluate(
    net_total: float,
    cashup_total: float | None = None,
    tolerance: float = BALANCE_TOLERANCE,
) -> ReconciliationResult:
    """
    Reconcile an evidence net total against a declared cash-up total.

    A missing declared total counts as 0. Balanced means the absolute delta
    is within tolerance (currency units, not percent). A mismatch is a result,
    never an exception.
    """
    declared = float(cashup_total or 0)
    delta = float(net_total) - declared
    return ReconciliationResult(
        net_total=float(net_total),
        cashup_total=declared,
        delta=delta,
        balanced=abs(delta) <= tolerance,
    )
