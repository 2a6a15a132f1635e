"""Factory for the configured invoice record store."""

import logging

from redis.asyncio import Redis

from invoicing.records.base import InvoiceStore
from invoicing.records.memory import InMemoryInvoiceStore
from invoicing.records.redis_store import RedisInvoiceStore
from invoicing.shared.config import Settings

logger = logging.getLogger(__name__)


def create_invoice_store(settings: Settings, redis: Redis | None = None) -> InvoiceStore:
    """Create the record store selected by ``settings.record_store``.

    Args:
        settings: Application settings
        redis: Existing async Redis client to reuse (e.g. the arq worker's)

    Returns:
        Configured invoice store
    """
    if settings.record_store == "redis":
        client = redis if redis is not None else Redis.from_url(settings.redis_url)
        logger.info("Using Redis invoice store")
        return RedisInvoiceStore(client)

    if settings.queue_enabled:
        logger.warning(
            "Queue is enabled with the in-memory invoice store; "
            "the worker will not see records created by the API. Set APP_RECORD_STORE=redis."
        )
    logger.info("Using in-memory invoice store")
    return InMemoryInvoiceStore()
