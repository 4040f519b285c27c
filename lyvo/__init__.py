"""
Lyvo - Source Package

A personal finance and agenda assistant driven by chat. The heart of the
package is the ledger engine (credit-card billing cycles, installments,
recurring fixed bills and forecasts, invoice settlement, balances).

DESIGN PRINCIPLES:
1. AI classifies → Human confirms → Engine computes
2. Fail early, fail visibly
3. No silent corrections
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Lyvo Team"
