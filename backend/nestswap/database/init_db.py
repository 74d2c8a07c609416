"""
Schema bootstrap for local development and tests.

Production schemas are managed by the platform's migrations; this only
creates missing tables.
"""

import logging
from typing import Optional

from sqlalchemy.engine import Engine

from . import Base, engine as default_engine

logger = logging.getLogger(__name__)


def init_db(bind: Optional[Engine] = None) -> None:
    """Create every table registered on Base.metadata that does not exist yet."""
    from .. import models  # noqa: F401  registers the mappers

    target = bind or default_engine
    Base.metadata.create_all(bind=target)
    logger.info(f"Database tables ensured on {target.url.render_as_string(hide_password=True)}")
