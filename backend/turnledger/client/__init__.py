from .app import ClientApp
from .backend import BackendError, HttpBackend
from .dashboard import Dashboard
from .grid import GridError, GridRow, RowStatus, TransactionGrid
from .pin_verifier import PinVerifier
from .session_store import SessionStore, UserSnapshot
from .storage import FileStorage, MemoryStorage
from .write_queue import RowWriteQueue

__all__ = [
    'ClientApp', 'BackendError', 'HttpBackend', 'Dashboard',
    'GridError', 'GridRow', 'RowStatus', 'TransactionGrid',
    'PinVerifier', 'SessionStore', 'UserSnapshot',
    'FileStorage', 'MemoryStorage', 'RowWriteQueue',
]
