from .inventory import Product, StockMovement, LowStockAlert
from .sales import Sale, SaleItem, Installment

__all__ = [
    'Product', 'StockMovement', 'LowStockAlert',
    'Sale', 'SaleItem', 'Installment',
]
