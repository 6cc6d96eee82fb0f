"""
main.py: Server launcher and entry point.

    python main.py

Starts uvicorn against the application object in app.py. API docs are served
at http://127.0.0.1:8000/docs. Host and port come from PLANNER_HOST and
PLANNER_PORT when set.
"""

from __future__ import annotations

import os

import uvicorn


HOST = os.getenv("PLANNER_HOST", "127.0.0.1")
PORT = int(os.getenv("PLANNER_PORT", "8000"))


def main() -> None:
    """Start the departmental resource planner API."""
    print("=" * 60)
    print("  Departmental Resource Planner")
    print("=" * 60)
    print(f"  Server   : http://{HOST}:{PORT}")
    print(f"  API docs : http://{HOST}:{PORT}/docs")
    print("=" * 60)
    print("  Press CTRL+C to stop\n")

    uvicorn.run(
        "app:app",
        host=HOST,
        port=PORT,
        reload=True,
        log_level="info",
    )


if __name__ == "__main__":
    main()
