"""
Human-readable business numbers: ``<PREFIX>-<YYYYMMDD>-<NNNN>``.
"""
from __future__ import annotations

import logging
import secrets
from datetime import datetime
from typing import Callable

from django.utils import timezone

from fulfillment.conf import get_setting
from fulfillment.domain.errors import NumberGenerationExhausted
from fulfillment.infra.retry import retry_with_backoff

logger = logging.getLogger(__name__)

ORDER_PREFIX = "ORD"
INVOICE_PREFIX = "INV"


class NumberCollision(Exception):
    """A generated number is already taken."""


def format_number(prefix: str, now: datetime, suffix: int) -> str:
    return f"{prefix}-{now:%Y%m%d}-{suffix:04d}"


def generate_number(
    prefix: str,
    exists: Callable[[str], bool],
    now: datetime | None = None,
    max_attempts: int | None = None,
) -> str:
    """
    Draw random suffixes until ``exists`` reports a free number.

    Raises NumberGenerationExhausted after ``max_attempts`` collisions.
    The unique constraint on the column still guards against a concurrent
    insert of the same number.
    """
    now = now or timezone.now()
    max_attempts = max_attempts or get_setting("NUMBER_MAX_ATTEMPTS")

    @retry_with_backoff(
        max_retries=max_attempts - 1,
        initial_delay=0,
        jitter=False,
        exceptions=(NumberCollision,),
    )
    def attempt() -> str:
        candidate = format_number(prefix, now, secrets.randbelow(10000))
        if exists(candidate):
            raise NumberCollision(candidate)
        return candidate

    try:
        return attempt()
    except NumberCollision as e:
        logger.error(
            "number_generation_exhausted",
            extra={"operation": prefix, "attempt": max_attempts, "error": str(e)},
        )
        raise NumberGenerationExhausted(prefix, max_attempts) from e
