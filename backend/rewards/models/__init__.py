from .accounts import Account, SessionToken
from .catalog import CatalogItem
from .purchases import PurchaseRequest, PurchaseRequestLine, PurchaseHistoryRecord, PurchaseHistoryLine
from .notifications import Notification
from .settings import GlobalSettings

__all__ = [
    'Account', 'SessionToken',
    'CatalogItem',
    'PurchaseRequest', 'PurchaseRequestLine', 'PurchaseHistoryRecord', 'PurchaseHistoryLine',
    'Notification',
    'GlobalSettings',
]
