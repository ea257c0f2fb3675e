"""Replicate client singleton."""

import logging
from typing import Any, Optional

import replicate

from app.config import settings

logger = logging.getLogger(__name__)

_client: Optional[Any] = None


def get_replicate() -> replicate.Client:
    """Get or create the Replicate client for the configured API token."""
    global _client
    if _client is None:
        _client = replicate.Client(api_token=settings.replicate_api_token)
        logger.info("Replicate configured with token %s...", settings.replicate_api_token[:6])
    return _client
