#!/usr/bin/env python3
# backend/run.py
"""
Development server runner.

Creates the local SQLite tables on startup (outside production) and serves
the scheduling API with auto-reload.
"""
from pathlib import Path

import uvicorn

from studio.core.config import settings

if __name__ == "__main__":
    print(f"Starting {settings.studio_name} scheduling API ({settings.environment})")
    print("Access at: http://localhost:8000")
    print("API Docs: http://localhost:8000/docs")

    uvicorn.run(
        "studio.main:app",
        host="0.0.0.0",
        port=8000,
        reload=not settings.is_production,
        log_level=settings.log_level.lower(),
        app_dir=str(Path(__file__).parent),
    )
