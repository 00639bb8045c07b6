"""
Routers package for FastAPI endpoints.

Organized by domain:
- analysis: Document analysis and history
- auth: Registration, login and profile
- payments: Credit purchases and ledger history
"""

from . import analysis, auth, payments

__all__ = ["analysis", "auth", "payments"]
