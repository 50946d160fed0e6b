# API Routers
from app.routers import pricing, refunds, configuration, wallet

__all__ = ['pricing', 'refunds', 'configuration', 'wallet']
