from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from workflow_sim.graph.engine import DEFAULT_MAX_STEPS
from workflow_sim.graph.io import DEFAULT_MAX_IMPORT_BYTES


DEFAULT_LOG_LEVEL = "INFO"


@dataclass(slots=True)
class AppSettings:
    max_steps: int = DEFAULT_MAX_STEPS
    max_import_bytes: int = DEFAULT_MAX_IMPORT_BYTES
    log_level: str = DEFAULT_LOG_LEVEL



def _get_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default



def load_settings() -> AppSettings:
    load_dotenv()

    return AppSettings(
        max_steps=_get_int("WORKFLOW_SIM_MAX_STEPS", DEFAULT_MAX_STEPS),
        max_import_bytes=_get_int("WORKFLOW_SIM_MAX_IMPORT_BYTES", DEFAULT_MAX_IMPORT_BYTES),
        log_level=os.getenv("LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
    )
