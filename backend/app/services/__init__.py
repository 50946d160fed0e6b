# Business Services
from app.services.configuration_service import ConfigurationService
from app.services.wallet_service import WalletService
from app.services.pricing_service import PricingService
from app.services.refund_service import RefundService

__all__ = [
    'ConfigurationService', 'WalletService', 'PricingService', 'RefundService'
]
