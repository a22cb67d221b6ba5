"""
Run the myRC API server.

Usage:
    python -m myrc_api [--config path/to/config.yaml] [--host HOST] [--port PORT]

Without ``--config`` the file named by ``$MYRC_CONFIG`` is used, falling
back to the packaged defaults (a local SQLite file).
"""

from __future__ import annotations

import argparse

import uvicorn

from myrc_api.app import create_app
from myrc_config import get_active_config


def main() -> int:
    parser = argparse.ArgumentParser(description="Serve the myRC HTTP API.")
    parser.add_argument("--config", type=str, default=None, help="YAML configuration file")
    parser.add_argument("--host", type=str, default=None)
    parser.add_argument("--port", type=int, default=None)
    args = parser.parse_args()

    config = get_active_config(args.config)
    app = create_app(config)
    uvicorn.run(
        app,
        host=args.host or config.api.host,
        port=args.port or config.api.port,
        log_config=None,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
