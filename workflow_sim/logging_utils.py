from __future__ import annotations

import logging
import os


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"



def configure_logging(level_name: str | None = None) -> None:
    name = (level_name or os.getenv("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, name, logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
