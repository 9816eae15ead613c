"""
Expense Tracker - Source Package

A small business expense tracker: expenses are logged, an AI
classifier suggests a tax category and deductibility, and records
can be synced to and from Google Sheets.

DESIGN PRINCIPLES:
1. The store is the only authority over expense identity
2. AI enrichment is best-effort - an expense is never lost because
   classification failed
3. A user's explicit category always wins over a suggestion
4. External services are injected, never looked up globally
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Expense Tracker Team"
