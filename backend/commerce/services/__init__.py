# backend/commerce/services/__init__.py
