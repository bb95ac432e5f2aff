"""Validation package."""

from lesson_ledger.validation.validator import DURATION_STEP, LedgerValidator

__all__ = ["DURATION_STEP", "LedgerValidator"]
