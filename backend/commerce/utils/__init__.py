# backend/commerce/utils/__init__.py
"""Shared helpers with no database or network dependencies."""
