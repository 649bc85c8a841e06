#!/usr/bin/env python3
"""Run the state service with uvicorn.

Reads API_SECRET, DATABASE_PATH and the other service settings from the
environment (or backend/.env).
"""

import argparse

import uvicorn


def main() -> int:
    parser = argparse.ArgumentParser(description="beliefsync state service")
    parser.add_argument("--host", default="127.0.0.1", help="Bind host")
    parser.add_argument("--port", type=int, default=8000, help="Bind port")
    parser.add_argument("--reload", action="store_true", help="Reload on code changes")
    args = parser.parse_args()

    uvicorn.run("app.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
