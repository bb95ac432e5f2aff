"""
Lesson Ledger - Source Package

A scheduling and billing ledger for a single tutor: students,
prepaid lesson packages and the lessons booked against them.

DESIGN PRINCIPLES:
1. One writer: every change goes through the action layer
2. The reducer is pure and total, it never raises
3. Package counters never leave [0, total]
4. Anything loaded from disk is migrated before it is trusted
5. Storage is swappable and best-effort
"""

__version__ = "1.0.0"
__author__ = "Lesson Ledger Team"
