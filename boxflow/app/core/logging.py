from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(debug: bool = False, engine_debug: bool = False) -> None:
    level = logging.DEBUG if debug else logging.INFO
    root_logger = logging.getLogger()

    # Hosts such as uvicorn or pytest may own the root handlers already.
    if not root_logger.handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT)

    root_logger.setLevel(level)
    logging.getLogger("boxflow").setLevel(level)

    # Engine debug output stays off unless engine_debug is set.
    engine_level = logging.DEBUG if engine_debug else max(level, logging.INFO)
    logging.getLogger("boxflow.app.engine").setLevel(engine_level)
