"""
Installment Lending Engine

Loan amortization, installment lifecycle, delinquency penalties and payment
allocation with overpayment spillover. All amounts use Decimal precision.
"""

__version__ = "1.0.0"
