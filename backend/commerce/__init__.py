# backend/commerce/__init__.py
"""Commerce scheduling backend: replenishment subscriptions and promotions."""

__version__ = "1.0.0"
