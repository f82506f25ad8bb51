from .enums import (
    Area, AREA_FLOW, UnitKind, OrderStatus, RepositionStatus, TransferStatus, HistoryAction,
)
from .users import User
from .units import Unit, FolioSequence
from .ledger import AreaPieceRecord
from .transfers import Transfer
from .timers import AreaTimer
from .history import HistoryEvent
from .notifications import Notification

__all__ = [
    'Area', 'AREA_FLOW', 'UnitKind', 'OrderStatus', 'RepositionStatus', 'TransferStatus', 'HistoryAction',
    'User',
    'Unit', 'FolioSequence',
    'AreaPieceRecord',
    'Transfer',
    'AreaTimer',
    'HistoryEvent',
    'Notification',
]
