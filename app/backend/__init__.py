"""
PropTech Document Analysis Backend.

A FastAPI service that analyses real estate PDFs with AI (OpenAI) and
meters usage with a per-account credit ledger topped up through Stripe.
"""

__version__ = "1.0.0"
