"""
Loan Ledger Engine

Flat-rate amortization, installment tracking, contract lifecycle and
payment slip reconciliation for small-lender loan contracts. All money
math uses Decimal in whole currency units.
"""

__version__ = "1.0.0"
