from .accounts import Account, ShippingAddress
from .vendors import VendorProfile, VerificationDocument
from .activity import ActivityLogEntry

__all__ = [
    'Account', 'ShippingAddress',
    'VendorProfile', 'VerificationDocument',
    'ActivityLogEntry',
]
