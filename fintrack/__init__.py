"""
FinTrack - Source Package

A personal finance tracker: bank accounts, income/expense records,
reports and AI-generated advice, backed by hosted services.

DESIGN PRINCIPLES:
1. Balances move only through atomic batches
2. Local state is a mirror of the store, never the source of truth
3. Missing configuration degrades to demo mode, it never crashes
4. External services sit behind swappable interfaces
"""

__version__ = "1.0.0"
__author__ = "FinTrack Team"
