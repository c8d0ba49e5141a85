import logging
import os

from services.media_worker.worker import run_worker_service


def main() -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    run_worker_service()


if __name__ == "__main__":
    main()
