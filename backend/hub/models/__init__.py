from .catalog import Product
from .representatives import Representative
from .ledger import Movement, LedgerImmutableError
from .cycles import ConsignmentCycle, SellerRanking

__all__ = [
    'Product',
    'Representative',
    'Movement', 'LedgerImmutableError',
    'ConsignmentCycle', 'SellerRanking',
]
