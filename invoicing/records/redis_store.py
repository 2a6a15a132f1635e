"""Redis-backed invoice record store.

Records are stored as JSON strings under ``invoice:{id}`` with a per-owner
index set, so the API and the arq worker can share them. Conditional updates
use WATCH/MULTI optimistic transactions.

Based on redis-py transaction docs:
https://redis.readthedocs.io/en/stable/examples/pipeline_examples.html
"""

import logging
from collections.abc import Collection
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import WatchError

from invoicing.records.base import InvoiceStore, merge_changes
from invoicing.records.models import InvoiceRecord, InvoiceStatus

logger = logging.getLogger(__name__)

MAX_WATCH_RETRIES = 5


class RedisInvoiceStore(InvoiceStore):
    """Invoice store on a shared Redis instance."""

    def __init__(self, redis: Redis, key_prefix: str = "invoice") -> None:
        """Initialize store.

        Args:
            redis: Async Redis client (an arq pool works too)
            key_prefix: Namespace for record keys
        """
        self._redis = redis
        self._prefix = key_prefix

    def _key(self, invoice_id: str) -> str:
        return f"{self._prefix}:{invoice_id}"

    def _owner_key(self, user_id: str) -> str:
        return f"{self._prefix}:owner:{user_id}"

    async def create(self, record: InvoiceRecord) -> InvoiceRecord:
        created = await self._redis.set(self._key(record.id), record.model_dump_json(), nx=True)
        if not created:
            raise ValueError(f"Invoice already exists: {record.id}")
        await self._redis.sadd(self._owner_key(record.user_id), record.id)
        return record

    async def get(self, invoice_id: str) -> InvoiceRecord | None:
        raw = await self._redis.get(self._key(invoice_id))
        if raw is None:
            return None
        return InvoiceRecord.model_validate_json(raw)

    async def list_for_owner(self, user_id: str) -> list[InvoiceRecord]:
        invoice_ids = await self._redis.smembers(self._owner_key(user_id))
        records = []
        for invoice_id in invoice_ids:
            if isinstance(invoice_id, bytes):
                invoice_id = invoice_id.decode()
            record = await self.get(invoice_id)
            if record is not None:
                records.append(record)
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    async def update(
        self,
        invoice_id: str,
        changes: dict[str, Any],
        expected_status: Collection[InvoiceStatus] | None = None,
    ) -> bool:
        key = self._key(invoice_id)

        for _ in range(MAX_WATCH_RETRIES):
            async with self._redis.pipeline(transaction=True) as pipe:
                try:
                    await pipe.watch(key)
                    raw = await pipe.get(key)
                    if raw is None:
                        return False

                    record = InvoiceRecord.model_validate_json(raw)
                    if expected_status is not None and record.status not in expected_status:
                        return False

                    updated = merge_changes(record, changes)
                    pipe.multi()
                    pipe.set(key, updated.model_dump_json())
                    await pipe.execute()
                    return True
                except WatchError:
                    logger.debug(f"Concurrent write on {key}, retrying update")

        raise RuntimeError(f"Could not update {key} after {MAX_WATCH_RETRIES} attempts")

    async def delete(self, invoice_id: str) -> bool:
        record = await self.get(invoice_id)
        if record is None:
            return False
        await self._redis.delete(self._key(invoice_id))
        await self._redis.srem(self._owner_key(record.user_id), invoice_id)
        return True
