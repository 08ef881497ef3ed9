"""Reconciliation Module"""

from .reconciliation_evaluator import ReconciliationResult, evaluate

__all__ = ["ReconciliationResult", "evaluate"]
