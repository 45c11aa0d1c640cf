from .async_bulk import AsyncBulk
from .bulk import MAX_OPS_PER_BATCH, Bulk, Config
from .errors import BulkError
from .runner import async_exec_bulk, exec_bulk

__all__ = ['MAX_OPS_PER_BATCH', 'AsyncBulk', 'Bulk', 'BulkError', 'Config',
           'async_exec_bulk', 'exec_bulk']
