"""
main.py: Server launcher and entry point.

Run this file to start the resource optimizer API:

    python main.py

This file does NOT contain application logic. See app.py for the FastAPI
application, service wiring, and startup sequence.

Direct uvicorn usage:
    uvicorn app:app --reload
"""

from __future__ import annotations

import os

import uvicorn


HOST = os.getenv("TUTORING_HOST", "127.0.0.1")
PORT = int(os.getenv("TUTORING_PORT", "8000"))


def main() -> None:
    """Start the resource optimizer API server."""
    print("=" * 60)
    print("  Tutoring Resource Optimizer")
    print("=" * 60)
    print(f"  Server   : http://{HOST}:{PORT}")
    print(f"  API docs : http://{HOST}:{PORT}/docs")
    print("  Callers identify themselves with the X-User-Id header")
    print("=" * 60)
    print("  Press CTRL+C to stop\n")

    # Blocks until CTRL+C
    uvicorn.run(
        "app:app",
        host=HOST,
        port=PORT,
        reload=True,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )


if __name__ == "__main__":
    main()
