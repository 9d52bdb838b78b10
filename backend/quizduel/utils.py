import logging
import sys
import time
from typing import Any, Dict, Optional

from .db import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(log_level: Optional[str] = None) -> logging.Logger:
    level = getattr(logging, (log_level or settings.LOG_LEVEL).upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = []

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(handler)
    return root_logger


def now_ts() -> float:
    return time.time()


def results_summary(p1: Dict[str, Any], p2: Dict[str, Any]) -> Dict[str, Any]:
    """Winner (``"p1"``, ``"p2"`` or ``None`` on a draw), scores and longest streaks."""

    if p1["score"] == p2["score"]:
        winner = None
    else:
        winner = "p1" if p1["score"] > p2["score"] else "p2"
    return {
        "winner": winner,
        "draw": winner is None,
        "scores": {"p1": p1["score"], "p2": p2["score"]},
        "longest_streaks": {"p1": p1["max_streak"], "p2": p2["max_streak"]},
    }
