"""
Main entrypoint: serves the API under uvicorn.

The session sweep scheduler starts inside the app lifespan, so one process
runs both.

Usage:
    python -m sencesync                      # 0.0.0.0:8000
    python -m sencesync --host 127.0.0.1 --port 9000
"""
import argparse
import logging

import uvicorn

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)


def main() -> None:
    parser = argparse.ArgumentParser(description="SENCE sync API server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args()

    logger.info("Starting SENCE sync API on %s:%d", args.host, args.port)
    uvicorn.run(
        "sencesync.api.main:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
