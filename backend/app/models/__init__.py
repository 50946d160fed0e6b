# ORM Models
from app.models.orm import (
    User, Hotel, RoomType, Room, Booking, Payment,
    PriceAdjustment, Refund, Wallet, WalletTransaction, Configuration
)

__all__ = [
    'User', 'Hotel', 'RoomType', 'Room', 'Booking', 'Payment',
    'PriceAdjustment', 'Refund', 'Wallet', 'WalletTransaction', 'Configuration'
]
