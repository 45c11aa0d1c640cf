from pymongo.errors import BulkWriteError


def write_error(index=0):
    """A BulkWriteError as raised by an unordered bulk_write."""
    return BulkWriteError({
        'nInserted': 0,
        'writeErrors': [{'index': index, 'code': 11000,
                         'errmsg': 'E11000 duplicate key error', 'op': {}}],
        'writeConcernErrors': [],
    })


class FakeCollection:
    """Records every bulk_write call; batches listed in `failures` (by
    zero-based submission index) raise the mapped exception instead.
    """

    def __init__(self, name='test', failures=None):
        self.name = name
        self.full_name = 'pymongo_test.' + name
        self.failures = failures or {}
        self.batches = []
        self.calls = []

    def _write(self, requests, **kwargs):
        index = len(self.batches)
        self.batches.append(list(requests))
        self.calls.append(kwargs)
        if index in self.failures:
            raise self.failures[index]
        return len(requests)

    def bulk_write(self, requests, **kwargs):
        return self._write(requests, **kwargs)


class AsyncFakeCollection(FakeCollection):

    async def bulk_write(self, requests, **kwargs):
        return self._write(requests, **kwargs)


class FakeDatabase:

    def __init__(self, collection_class=FakeCollection, failures=None):
        self.collection_class = collection_class
        self.failures = failures
        self.collections = {}

    def __getitem__(self, name):
        if name not in self.collections:
            self.collections[name] = self.collection_class(name, self.failures)
        return self.collections[name]
