from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable, List

from .db import settings
from .models import Question

logger = logging.getLogger(__name__)

BUNDLED_QUESTIONS = Path(__file__).with_name("questions.json")


def parse_catalog(records: Iterable[dict[str, Any]]) -> List[Question]:
    """Validate raw question records and return them in play order.

    The sort on ``order`` is stable, so records sharing an order value keep
    their file order. The last element is the finale.
    """

    questions = [Question.model_validate(record) for record in records]
    if not questions:
        raise ValueError("A catalog needs at least one question")

    seen: set[str] = set()
    for q in questions:
        if q.id in seen:
            raise ValueError(f"Duplicate question id: {q.id}")
        seen.add(q.id)

    return sorted(questions, key=lambda q: q.order)


def load_catalog_file(path: str | Path) -> List[Question]:
    with open(path, encoding="utf-8") as fh:
        data = json.load(fh)
    if isinstance(data, dict):
        data = data.get("questions", [])
    return parse_catalog(data)


@lru_cache
def default_catalog() -> tuple[Question, ...]:
    path = settings.QUESTIONS_FILE or BUNDLED_QUESTIONS
    questions = load_catalog_file(path)
    logger.info("Loaded %d questions from %s", len(questions), path)
    return tuple(questions)
