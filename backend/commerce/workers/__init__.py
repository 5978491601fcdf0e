# backend/commerce/workers/__init__.py
