"""
Finance Tracker - Source Package

Reporting core for a personal finance tracker (income, expenses,
budgets, savings goals) that runs as a thin client over a hosted store.

DESIGN PRINCIPLES:
1. Raw rows are parsed into typed entities at the boundary
2. Every derived number is a pure function of the last fetch
3. Local business rules are reported, never confused with backend errors
4. Every fetch and write is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Finance Tracker Team"
