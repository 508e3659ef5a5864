from .outlets import Outlet
from .inventory import Product, InventoryRecord, StockMovement, LowStockAlert
from .sales import Sale, SaleLineItem, Payment, Refund, RefundLineItem
from .shifts import CashSession
from .audit import AuditLogEntry

__all__ = [
    'Outlet',
    'Product', 'InventoryRecord', 'StockMovement', 'LowStockAlert',
    'Sale', 'SaleLineItem', 'Payment', 'Refund', 'RefundLineItem',
    'CashSession',
    'AuditLogEntry',
]
