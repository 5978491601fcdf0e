# backend/commerce/routers/__init__.py
