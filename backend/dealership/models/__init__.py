from .auth import User, SessionToken
from .inventory import Tractor, TractorBrand, TractorModel, PartCategory, PartName, SparePart
from .service import ServiceRecord
from .accounting import Expense, Transaction

__all__ = [
    'User', 'SessionToken',
    'Tractor', 'TractorBrand', 'TractorModel', 'PartCategory', 'PartName', 'SparePart',
    'ServiceRecord',
    'Expense', 'Transaction',
]
