from typing import Awaitable, Callable, Optional

from .async_bulk import AsyncBulk
from .bulk import Bulk, Config


def exec_bulk(database: 'pymongo.database.Database', collection_name: str,
              config: Optional[Config], func: Callable[[Bulk], None]) -> None:
    """Run `func` against a :class:`~mongobulk.bulk.Bulk` on
    ``database[collection_name]`` and finish it.

    `func` is called exactly once and must not keep the bulk around; any
    use after this returns raises :class:`~pymongo.errors.InvalidOperation`.
    Batch failures are raised as :class:`~mongobulk.errors.BulkError`. If
    `func` raises, pending operations are dropped and the exception
    propagates.

    :Parameters:
      - `database`: database holding the collection
      - `collection_name`: name of the collection to write to
      - `config`: a :class:`~mongobulk.bulk.Config`, or ``None`` for the
        defaults
      - `func`: callable receiving the bulk
    """
    with Bulk(database[collection_name], config) as bulk:
        func(bulk)


async def async_exec_bulk(database: 'pymongo.asynchronous.database.AsyncDatabase',
                          collection_name: str, config: Optional[Config],
                          func: Callable[[AsyncBulk], Awaitable[None]]) -> None:
    """Coroutine version of :func:`exec_bulk`; `func` is awaited once."""
    async with AsyncBulk(database[collection_name], config) as bulk:
        await func(bulk)
