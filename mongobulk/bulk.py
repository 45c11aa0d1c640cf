import logging
from collections.abc import Mapping
from typing import Any, Iterable, List, NamedTuple, Optional, Sequence, Tuple

from pymongo import common
from pymongo.errors import ConfigurationError, InvalidOperation, PyMongoError
from pymongo.operations import (DeleteMany, DeleteOne, InsertOne, ReplaceOne,
                                UpdateMany, UpdateOne)

from .errors import BulkError

logger = logging.getLogger(__name__)

# Largest number of write operations the server accepts in one bulk request.
MAX_OPS_PER_BATCH = 1000


class Config(NamedTuple):
    """Settings of a :class:`Bulk`.

    :Parameters:
      - `ops_per_batch`: number of operations queued before the batch is
        executed. ``0`` means :data:`MAX_OPS_PER_BATCH`, which is also the
        upper bound.
      - `bypass_document_validation`: passed to every ``bulk_write`` call.
    """
    ops_per_batch: int = 0
    bypass_document_validation: bool = False


def resolve_config(config: Optional[Config]) -> Config:
    if config is None:
        config = Config()
    ops = config.ops_per_batch
    if ops is None or ops == 0:
        return config._replace(ops_per_batch=MAX_OPS_PER_BATCH)
    if isinstance(ops, bool) or not isinstance(ops, int):
        raise TypeError('ops_per_batch must be an integer, not %r' % (ops,))
    if ops < 0 or ops > MAX_OPS_PER_BATCH:
        raise ConfigurationError(
            'ops_per_batch must be between 1 and %d, got %d' % (
                MAX_OPS_PER_BATCH, ops))
    return config


def _is_replacement(document: Any) -> bool:
    # Pipelines (lists) are updates, so is anything led by a $ operator.
    if not isinstance(document, Mapping):
        return False
    if not document:
        return True
    return not str(next(iter(document))).startswith('$')


def _split_pairs(pairs: Sequence[Tuple[Any, Any]]) -> List[Tuple[Any, Any]]:
    split = []
    for pair in pairs:
        if not isinstance(pair, (tuple, list)) or len(pair) != 2:
            raise TypeError('expected a (selector, document) pair, got %r'
                            % (pair,))
        selector, document = pair
        common.validate_is_mapping('selector', selector)
        split.append((selector, document))
    return split


def insert_requests(documents) -> List[InsertOne]:
    for document in documents:
        common.validate_is_document_type('document', document)
    return [InsertOne(document) for document in documents]


def remove_requests(selectors, multi: bool = False) -> list:
    for selector in selectors:
        common.validate_is_mapping('selector', selector)
    op = DeleteMany if multi else DeleteOne
    return [op(selector) for selector in selectors]


def update_requests(pairs, multi: bool = False, upsert: bool = False) -> list:
    kwargs = {'upsert': True} if upsert else {}
    requests = []
    for selector, document in _split_pairs(pairs):
        # Checks done by bulk_write, so a bad document fails here and not
        # when its batch runs.
        common.validate_list_or_mapping('document', document)
        replacement = not multi and _is_replacement(document)
        if replacement:
            common.validate_ok_for_replace(document)
        else:
            common.validate_ok_for_update(document)

        if multi:
            requests.append(UpdateMany(selector, document, **kwargs))
        elif replacement:
            requests.append(ReplaceOne(selector, document, **kwargs))
        else:
            requests.append(UpdateOne(selector, document, **kwargs))
    return requests


class BaseBulk:
    """Batching state shared by :class:`Bulk` and
    :class:`~mongobulk.async_bulk.AsyncBulk`.

    Subclasses supply the enqueue methods and the code that actually
    submits a batch to the collection.
    """

    def __init__(self, collection, config: Optional[Config] = None):
        self.collection = collection
        self.config = resolve_config(config)

        self._batch = None
        self._count = 0
        self._errors = []
        self._batches = 0
        self._finished = False

    @property
    def pending(self) -> int:
        """Number of operations queued and not executed yet."""
        return self._count

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def errors(self) -> List[PyMongoError]:
        """Failures of the batches executed so far, in submission order."""
        return list(self._errors)

    def _check_open(self) -> None:
        if self._finished:
            raise InvalidOperation(
                'performing an operation on a finished bulk')

    def _is_full(self) -> bool:
        return self._count >= self.config.ops_per_batch

    def _append(self, request) -> None:
        self._count += 1
        if self._batch is None:
            self._batch = []
        self._batch.append(request)

    def _take_batch(self) -> Optional[list]:
        batch = self._batch
        self._batch = None
        self._count = 0
        if batch is not None:
            self._batches += 1
            logger.debug('Executing batch #%d of %d operations on %s',
                         self._batches, len(batch), self._namespace())
        return batch

    def _record(self, exc: PyMongoError) -> None:
        logger.warning('Batch #%d on %s failed: %s',
                       self._batches, self._namespace(), exc)
        self._errors.append(exc)

    def _mark_finished(self) -> None:
        if self._finished:
            raise InvalidOperation('attempting to finish a bulk twice')
        self._finished = True

    def _discard(self) -> None:
        self._finished = True
        if self._batch:
            logger.debug('Discarding %d pending operations on %s',
                         self._count, self._namespace())
        self._batch = None
        self._count = 0

    def _raise_errors(self) -> None:
        logger.debug('Finished bulk on %s: %d batches, %d failed',
                     self._namespace(), self._batches, len(self._errors))
        if self._errors:
            raise BulkError(self._errors, self._batches)

    def _log_unraised(self) -> None:
        # The last batch raised something other than a PyMongoError, which
        # propagates instead of the BulkError.
        if self._errors:
            logger.error('Bulk on %s aborted with %d failed batches not '
                         'raised: %s', self._namespace(), len(self._errors),
                         '; '.join(str(exc) for exc in self._errors))

    def _write_kwargs(self) -> dict:
        kwargs = {'ordered': False}
        if self.config.bypass_document_validation:
            kwargs['bypass_document_validation'] = True
        return kwargs

    def _namespace(self) -> str:
        return str(getattr(self.collection, 'full_name', self.collection))


class Bulk(BaseBulk):
    """Queue writes for `collection` and run them as unordered bulk
    requests of at most ``config.ops_per_batch`` operations each.

    A batch is executed when an operation is queued while the current batch
    is already full, and by :meth:`finish`. Failed batches do not stop
    the following ones; their errors are raised together by
    :meth:`finish` as a :class:`~mongobulk.errors.BulkError`.

    Instances are meant to be driven by a single caller::

      bulk = Bulk(db.things, Config(ops_per_batch=500))
      for doc in docs:
          bulk.insert(doc)
      bulk.upsert(({'_id': 1}, {'$set': {'seen': True}}))
      bulk.finish()

    Used as a context manager, the bulk is finished when the block exits
    normally, so the block itself must not call :meth:`finish` (a second
    finish raises :class:`~pymongo.errors.InvalidOperation`). If the block
    raises, pending operations are dropped.
    """

    def __enter__(self) -> 'Bulk':
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        if exc_type is None:
            self.finish()
        else:
            self._discard()

    def insert(self, *documents: Any) -> None:
        """Queue an insert of each of `documents`."""
        self._check_open()
        self._add(insert_requests(documents))

    def remove(self, *selectors: Mapping) -> None:
        """Queue removal of a single document matching each selector."""
        self._check_open()
        self._add(remove_requests(selectors))

    def remove_all(self, *selectors: Mapping) -> None:
        """Queue removal of every document matching each selector."""
        self._check_open()
        self._add(remove_requests(selectors, multi=True))

    def update(self, *pairs: Tuple[Mapping, Any]) -> None:
        """Queue an update of one document for each ``(selector, document)``
        pair.

        `document` is either an update (``{'$set': ...}``, a pipeline) or a
        replacement document.
        """
        self._check_open()
        self._add(update_requests(pairs))

    def update_all(self, *pairs: Tuple[Mapping, Any]) -> None:
        """Queue an update of every matching document for each
        ``(selector, update)`` pair.
        """
        self._check_open()
        self._add(update_requests(pairs, multi=True))

    def upsert(self, *pairs: Tuple[Mapping, Any]) -> None:
        """Like :meth:`update`, inserting the document when nothing
        matches the selector.
        """
        self._check_open()
        self._add(update_requests(pairs, upsert=True))

    def finish(self) -> None:
        """Execute the pending batch and close the bulk.

        Raises :class:`~mongobulk.errors.BulkError` if any batch executed
        by this bulk failed, and
        :class:`~pymongo.errors.InvalidOperation` if the bulk was already
        finished. Any other exception from executing the last batch
        propagates as is; earlier failures are then logged and remain in
        :attr:`errors`.
        """
        self._mark_finished()
        try:
            self._flush()
        except Exception:
            self._log_unraised()
            raise
        self._raise_errors()

    def _add(self, requests: Iterable) -> None:
        for request in requests:
            if self._is_full():
                self._flush()
            self._append(request)

    def _flush(self) -> None:
        batch = self._take_batch()
        if batch is None:
            return
        try:
            self.collection.bulk_write(batch, **self._write_kwargs())
        except PyMongoError as exc:
            self._record(exc)
