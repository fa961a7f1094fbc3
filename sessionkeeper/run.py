#!/usr/bin/env python3
"""Run the SessionKeeper application"""
import uvicorn

from sessionkeeper.core.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "sessionkeeper.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )
