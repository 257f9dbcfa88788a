#!/usr/bin/env python3
"""
Backend server launcher script.

Starts uvicorn on the ``backend.api`` application. Run from the project root:

    python -m backend.run_server
"""

import os

BACKEND_DIR = os.path.dirname(os.path.abspath(__file__))


def main() -> None:
    import uvicorn

    uvicorn.run(
        "backend.api:app",
        host=os.environ.get("PINPLAN_HOST", "127.0.0.1"),
        port=int(os.environ.get("PINPLAN_PORT", "8000")),
        reload=os.environ.get("PINPLAN_RELOAD", "false").lower() in ("true", "1", "yes"),
        reload_dirs=[BACKEND_DIR],
    )


if __name__ == "__main__":
    main()
