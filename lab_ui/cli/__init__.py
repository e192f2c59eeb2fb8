from .main import app, ctx_store

__all__ = ["app", "ctx_store"]
