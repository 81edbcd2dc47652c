import os
import json
import logging
import threading

logger = logging.getLogger("media-counter")


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format="%(message)s")


def log_json(level_func, payload: dict) -> None:
    payload = {
        **payload,
        "pid": os.getpid(),
        "tid": threading.get_ident(),
    }
    level_func(json.dumps(payload, ensure_ascii=False, default=str))
