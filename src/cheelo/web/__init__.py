"""FastAPI read API for live player views and tournament documents."""
