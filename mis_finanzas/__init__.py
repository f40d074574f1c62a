"""
Mis Finanzas - Source Package

A personal-finance client: record income and expenses, attach receipts,
and let automated savings rules (round-up and income retention) move
money into a savings pot.

DESIGN PRINCIPLES:
1. The remote backend is the source of truth for transactions and categories
2. The user's transaction is never lost because of a savings rule
3. Every side effect is logged
4. The backend is injected, never reached through a global
"""

__version__ = "1.0.0"
__author__ = "Mis Finanzas Team"
