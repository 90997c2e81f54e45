# ================================
# DATABASE INITIALIZATION (models/__init__.py)
# ================================

"""
Database Models Package

Imports all models for Alembic auto-generation
"""

from app.models.base import Base

from app.models.business import (
    ApplicationStatus, PaymentStatus, InstrumentType,
    Merchant, MerchantFeeProfile, PaymentInstrument,
    ServiceTile, ServiceApplication, ApplicationStatusHistory
)

# Export all models
__all__ = [
    "Base",
    "ApplicationStatus",
    "PaymentStatus",
    "InstrumentType",
    "Merchant",
    "MerchantFeeProfile",
    "PaymentInstrument",
    "ServiceTile",
    "ServiceApplication",
    "ApplicationStatusHistory"
]
