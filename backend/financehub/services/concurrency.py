# Overview: Commit and retry helpers shared by services, routes and the feed consumer.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..validation import UpstreamUnavailable


_LOGGER = logging.getLogger(__name__)


def commit_session() -> None:
    """
    Commit the current unit of work.

    Writes are not retried: on failure the session is rolled back, so the
    local projection keeps its pre-request state, and the caller receives
    UpstreamUnavailable with a message fit to show the user.
    """
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        _LOGGER.warning("Commit failed: %s", exc)
        raise UpstreamUnavailable("Data store unavailable; the change was not saved") from exc


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, sleep=time.sleep):
    """
    Execute func, retrying on UpstreamUnavailable with exponential backoff.

    Used for reconnecting readers (the change feed consumer), never for
    voucher writes.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except UpstreamUnavailable as exc:
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            delay = backoff_base * (2 ** attempt)
            _LOGGER.info("Upstream unavailable (%s); retrying in %.2fs", exc, delay)
            sleep(delay)
    if last_exc:
        raise last_exc
