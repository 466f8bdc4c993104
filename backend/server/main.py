"""
Command-line entry point for the control-surface server.

Responsibilities:
- Load .env and AppConfig
- Run the FastAPI app under uvicorn on the configured bind address
"""

from __future__ import annotations

import argparse

import uvicorn
from dotenv import load_dotenv

from config import AppConfig
from server.app import create_app


def main() -> None:
    load_dotenv()
    config = AppConfig.load_from_env()

    parser = argparse.ArgumentParser(description="Rover remote control-surface server")
    parser.add_argument("--host", default=config.server_host, help="HTTP bind host")
    parser.add_argument("--port", type=int, default=config.server_port, help="HTTP bind port")
    args = parser.parse_args()

    uvicorn.run(
        create_app(config),
        host=args.host,
        port=args.port,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
