#!/usr/bin/env python
"""
Candidate Ranker backend launcher

Usage:
    python run.py                    # default (127.0.0.1:8000)
    python run.py -p 8080            # custom port
    python run.py --host 0.0.0.0     # listen on all interfaces
    python run.py --reload           # hot reload
"""
import argparse
import shutil
import sys
from pathlib import Path

from loguru import logger

ROOT_DIR = Path(__file__).parent


def parse_args():
    parser = argparse.ArgumentParser(
        description="Candidate Ranker backend launcher",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-p", "--port",
        type=int,
        default=8000,
        help="Port (default: 8000)"
    )
    parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Bind address (default: 127.0.0.1)"
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable hot reload (development)"
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Worker processes (default: 1)"
    )
    return parser.parse_args()


def check_env():
    """Create .env from .env.example on first run"""
    env_file = ROOT_DIR / ".env"
    env_example = ROOT_DIR / ".env.example"

    if not env_file.exists():
        if env_example.exists():
            shutil.copy(env_example, env_file)
            logger.info(".env created from .env.example, adjust it as needed")
        else:
            logger.warning(".env not found, using default settings")


def main():
    args = parse_args()
    check_env()

    if args.workers > 1 and not args.reload:
        # the ranking commit lock and the rate limiters are per process
        logger.warning("Running {} workers: rate limits and ranking commits are per worker", args.workers)

    logger.info("Serving on http://{}:{} (docs at /docs, reload={})", args.host, args.port, args.reload)

    import uvicorn
    try:
        uvicorn.run(
            "candidate_ranker.main:app",
            host=args.host,
            port=args.port,
            reload=args.reload,
            workers=args.workers if not args.reload else 1,
            log_level="info",
        )
    except KeyboardInterrupt:
        logger.info("Server stopped")
        sys.exit(0)


if __name__ == "__main__":
    main()
