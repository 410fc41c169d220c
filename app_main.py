"""Application entry point for the ExamPractice API."""

from __future__ import annotations

import argparse
from pathlib import Path

from exam_app.constants.about import APP_NAME, APP_VERSION
from exam_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from exam_app.constants.security_constants import DATA_FILE, JWT_SECRET
from exam_app.core.credentials import CredentialService
from exam_app.core.errors import PersistenceFailure
from exam_app.core.exam_manager import ExamManager
from exam_app.core.services.exam_store import ExamStore
from exam_app.server.api_server import run_api_server
from exam_app.utils.logging_config import configure_logging


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="exam-app", description=f"{APP_NAME} exam practice API")
    parser.add_argument("--host", default=DEFAULT_HOST, help="interface to bind (default: %(default)s)")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="port to listen on (default: %(default)s)")
    parser.add_argument(
        "--data-file",
        type=Path,
        default=Path(DATA_FILE) if DATA_FILE else None,
        help="JSON file for persistent data; omit to keep everything in memory",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Initialize logging, wire the services together and serve the API."""
    args = _parse_args(argv)
    logger = configure_logging()
    logger.info("Starting %s %s", APP_NAME, APP_VERSION)
    if args.data_file is None:
        logger.warning("No data file configured; accounts and results are kept in memory only")

    try:
        store = ExamStore(data_path=args.data_file)
    except PersistenceFailure as exc:
        logger.error("Cannot start: %s", exc)
        raise SystemExit(1) from exc
    credentials = CredentialService(store, secret=JWT_SECRET)
    exam_manager = ExamManager(store, credentials)
    run_api_server(exam_manager, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
