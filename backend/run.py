#!/usr/bin/env python3
# backend/run.py
"""
Development server runner.

Reads the same environment as the app (backend/.env is loaded by the
settings module); GYMBOOK_PORT picks the port.
"""
import os
from pathlib import Path
import sys

# Add backend to path
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))
os.chdir(backend_dir)

import uvicorn

if __name__ == "__main__":
    port = int(os.getenv("GYMBOOK_PORT", "8000"))
    print(f"🌐 Access at: http://localhost:{port}")
    print(f"📚 API Docs: http://localhost:{port}/docs")

    uvicorn.run(
        "gymbook.main:app",
        host="0.0.0.0",
        port=port,
        reload=True,
        log_level="info",
        timeout_graceful_shutdown=5,
    )
