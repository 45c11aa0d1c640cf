from collections.abc import Mapping
from typing import Any, Iterable, Tuple

from pymongo.errors import PyMongoError

from .bulk import BaseBulk, insert_requests, remove_requests, update_requests


class AsyncBulk(BaseBulk):
    """Asyncio counterpart of :class:`~mongobulk.bulk.Bulk`.

    `collection` is any collection whose ``bulk_write`` is a coroutine
    taking pymongo request objects, such as
    :class:`pymongo.asynchronous.collection.AsyncCollection`. Every method
    that may execute a batch is a coroutine::

      async with AsyncBulk(db.things) as bulk:
          await bulk.insert(*docs)
          await bulk.remove_all({'stale': True})
    """

    async def __aenter__(self) -> 'AsyncBulk':
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> None:
        if exc_type is None:
            await self.finish()
        else:
            self._discard()

    async def insert(self, *documents: Any) -> None:
        self._check_open()
        await self._add(insert_requests(documents))

    async def remove(self, *selectors: Mapping) -> None:
        self._check_open()
        await self._add(remove_requests(selectors))

    async def remove_all(self, *selectors: Mapping) -> None:
        self._check_open()
        await self._add(remove_requests(selectors, multi=True))

    async def update(self, *pairs: Tuple[Mapping, Any]) -> None:
        self._check_open()
        await self._add(update_requests(pairs))

    async def update_all(self, *pairs: Tuple[Mapping, Any]) -> None:
        self._check_open()
        await self._add(update_requests(pairs, multi=True))

    async def upsert(self, *pairs: Tuple[Mapping, Any]) -> None:
        self._check_open()
        await self._add(update_requests(pairs, upsert=True))

    async def finish(self) -> None:
        """Execute the pending batch and close the bulk.

        Raises :class:`~mongobulk.errors.BulkError` when any batch failed.
        """
        self._mark_finished()
        try:
            await self._flush()
        except Exception:
            self._log_unraised()
            raise
        self._raise_errors()

    async def _add(self, requests: Iterable) -> None:
        for request in requests:
            if self._is_full():
                await self._flush()
            self._append(request)

    async def _flush(self) -> None:
        batch = self._take_batch()
        if batch is None:
            return
        try:
            await self.collection.bulk_write(batch, **self._write_kwargs())
        except PyMongoError as exc:
            self._record(exc)
