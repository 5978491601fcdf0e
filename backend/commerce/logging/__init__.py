# backend/commerce/logging/__init__.py
"""Loguru configuration shared by the API and worker processes."""

from .setup import setup_logging

__all__ = ["setup_logging"]
