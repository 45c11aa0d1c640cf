from typing import Iterable, Iterator

from pymongo.errors import PyMongoError


class BulkError(PyMongoError):
    """Raised by :meth:`~mongobulk.Bulk.finish` when one or more batches
    failed to execute.

    Every batch is submitted independently, so a failure never stops the
    batches that follow it. The individual failures are kept, in
    submission order, in :attr:`errors`.
    """

    def __init__(self, errors: Iterable[PyMongoError], batches: int = 0):
        self.errors = list(errors)
        self.batches = max(batches, len(self.errors))
        if not self.errors:
            raise ValueError('BulkError requires at least one error')
        message = '%d of %d batches failed, first error: %s' % (
            len(self.errors), self.batches, self.errors[0])
        super().__init__(message)
        self.__cause__ = self.errors[0]

    def __len__(self) -> int:
        return len(self.errors)

    def __iter__(self) -> Iterator[PyMongoError]:
        return iter(self.errors)
