from .representatives import Representative
from .vouchers import Voucher
from .auth import SessionToken

__all__ = [
    'Representative',
    'Voucher',
    'SessionToken',
]
