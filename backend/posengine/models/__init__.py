from .tenancy import Store, Currency, StoreCurrency
from .catalog import Product, ProductPrice, ProductStore, ProductStorePrice
from .customers import Customer, PaymentMode
from .transactions import (
    Transaction,
    TransactionItem,
    TransactionPayment,
    TransactionVersion,
    TransactionSequence,
    TransactionStatus,
    TransactionChangeType,
)
from .inventory import InventoryLog, InventoryActivityCodes

__all__ = [
    'Store', 'Currency', 'StoreCurrency',
    'Product', 'ProductPrice', 'ProductStore', 'ProductStorePrice',
    'Customer', 'PaymentMode',
    'Transaction', 'TransactionItem', 'TransactionPayment', 'TransactionVersion',
    'TransactionSequence', 'TransactionStatus', 'TransactionChangeType',
    'InventoryLog', 'InventoryActivityCodes',
]
