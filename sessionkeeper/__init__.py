"""SessionKeeper: per-request session identity resolution for FastAPI applications."""

__version__ = "1.0.0"
