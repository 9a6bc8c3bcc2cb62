from .auth import User, SessionToken
from .settings import UserSettings
from .inventory import Category, Supplier, Product
from .clients import Client
from .transactions import Transaction, TransactionItem, Payment
from .expenses import ExpenseCategory, Expense
from .notifications import Notification

__all__ = [
    'User', 'SessionToken', 'UserSettings',
    'Category', 'Supplier', 'Product',
    'Client',
    'Transaction', 'TransactionItem', 'Payment',
    'ExpenseCategory', 'Expense',
    'Notification',
]
