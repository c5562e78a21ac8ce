"""Run the PhotoFlow worker pool until interrupted.

Usage:
    PHOTOFLOW_BACKEND=aws PHOTOFLOW_SQS_QUEUE_URL=... python scripts/run_workers.py --workers 8
"""

from __future__ import annotations

import argparse
import logging
import signal
import threading

from photoflow.bootstrap import build
from photoflow.core.config import AppSettings, WorkerConfig
from photoflow.core.logging import configure_logging

logger = logging.getLogger("photoflow.run_workers")


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--workers", type=int, default=None, help="Override worker concurrency")
    args = parser.parse_args()

    settings = AppSettings()
    if args.workers is not None:
        worker = settings.worker.model_dump()
        worker["concurrency"] = args.workers
        settings = settings.model_copy(update={"worker": WorkerConfig(**worker)})
    configure_logging(settings.log_level)

    _, pool = build(settings)
    stop = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: stop.set())
    signal.signal(signal.SIGTERM, lambda *_: stop.set())

    pool.start()
    stop.wait()
    logger.info("Shutdown requested, draining in-flight jobs")
    pool.stop()


if __name__ == "__main__":
    main()
