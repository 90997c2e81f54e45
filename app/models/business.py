# ================================
# BUSINESS MODELS (models/business.py)
# ================================

from sqlalchemy import Column, String, Integer, Boolean, Text, Date, DateTime, ForeignKey, Index, Uuid
from sqlalchemy.orm import relationship
import enum

from app.models.base import Base, utcnow

class ApplicationStatus(str, enum.Enum):
    """Lifecycle of a municipal service application / booking"""
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    ISSUED = "issued"
    DENIED = "denied"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"
    CANCELLED = "cancelled"
    EXPIRED = "expired"

class PaymentStatus(str, enum.Enum):
    """Local payment states; processor transfer states are stored lower-cased"""
    PENDING = "pending"  # transfer requested, outcome not recorded yet
    FAILED = "failed"

class InstrumentType(str, enum.Enum):
    PAYMENT_CARD = "PAYMENT_CARD"
    BANK_ACCOUNT = "BANK_ACCOUNT"

class Merchant(Base):
    """Merchant account at the payment processor, one per customer and subcategory"""
    __tablename__ = "merchants"

    customer_id = Column(Uuid(as_uuid=True), nullable=False)
    merchant_name = Column(String(255), nullable=False)
    subcategory = Column(String(100), nullable=True)
    processor_merchant_id = Column(String(100), nullable=True)

    # Relationships
    fee_profile = relationship("MerchantFeeProfile", back_populates="merchant", uselist=False)

    __table_args__ = (
        Index('idx_merchants_customer_id', 'customer_id'),
    )

    def __repr__(self):
        return f"<Merchant(name='{self.merchant_name}', customer='{self.customer_id}')>"

class MerchantFeeProfile(Base):
    """Negotiated service fee rates of a merchant"""
    __tablename__ = "merchant_fee_profiles"

    merchant_id = Column(Uuid(as_uuid=True), ForeignKey('merchants.id', ondelete='CASCADE'), nullable=False, unique=True)

    # Card rates
    card_basis_points = Column(Integer, nullable=False, default=300)
    card_fixed_fee_cents = Column(Integer, nullable=False, default=50)

    # ACH rates
    ach_basis_points = Column(Integer, nullable=False, default=150)
    ach_fixed_fee_cents = Column(Integer, nullable=False, default=50)
    ach_basis_points_fee_limit_cents = Column(Integer, nullable=True)  # Cap on the percentage part only

    processor_fee_profile_id = Column(String(100), nullable=True)

    # Relationships
    merchant = relationship("Merchant", back_populates="fee_profile")

    def __repr__(self):
        return f"<MerchantFeeProfile(merchant='{self.merchant_id}', card_bp={self.card_basis_points}, ach_bp={self.ach_basis_points})>"

class PaymentInstrument(Base):
    """Tokenized payment method saved by a user"""
    __tablename__ = "user_payment_instruments"

    user_id = Column(Uuid(as_uuid=True), nullable=False)
    processor_instrument_id = Column(String(100), nullable=False)
    instrument_type = Column(String(50), nullable=False)  # PAYMENT_CARD, BANK_ACCOUNT
    display_name = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    __table_args__ = (
        Index('idx_payment_instruments_user_id', 'user_id'),
    )

    def __repr__(self):
        return f"<PaymentInstrument(user='{self.user_id}', type='{self.instrument_type}')>"

class ServiceTile(Base):
    """A bookable or payable municipal service (facility, permit, license)"""
    __tablename__ = "municipal_service_tiles"

    customer_id = Column(Uuid(as_uuid=True), nullable=False)
    merchant_id = Column(Uuid(as_uuid=True), ForeignKey('merchants.id'), nullable=True)
    title = Column(String(255), nullable=False)
    amount_cents = Column(Integer, nullable=True)
    has_time_slots = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    merchant = relationship("Merchant")
    applications = relationship("ServiceApplication", back_populates="tile")

    __table_args__ = (
        Index('idx_service_tiles_customer_id', 'customer_id'),
    )

    def __repr__(self):
        return f"<ServiceTile(title='{self.title}', time_slots={self.has_time_slots})>"

class ServiceApplication(Base):
    """Application for a municipal service; time-slot bookings carry a booking date"""
    __tablename__ = "municipal_service_applications"

    # Foreign Keys
    tile_id = Column(Uuid(as_uuid=True), ForeignKey('municipal_service_tiles.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(Uuid(as_uuid=True), nullable=False)
    customer_id = Column(Uuid(as_uuid=True), nullable=False)

    # Applicant
    applicant_name = Column(String(255), nullable=True)
    applicant_email = Column(String(255), nullable=True)

    # Time slot (NULL booking_date for plain applications)
    booking_date = Column(Date, nullable=True)
    booking_start_time = Column(String(8), nullable=True)  # zero-padded HH:MM[:SS]
    booking_end_time = Column(String(8), nullable=True)

    # Status Tracking
    status = Column(String(20), nullable=False, default=ApplicationStatus.DRAFT.value)
    payment_status = Column(String(20), nullable=True)

    # Payment
    base_amount_cents = Column(Integer, nullable=True)
    service_fee_cents = Column(Integer, nullable=True)
    total_amount_cents = Column(Integer, nullable=True)
    processor_transfer_id = Column(String(100), nullable=True)
    payment_idempotency_id = Column(String(100), nullable=True)  # key of the latest processor attempt

    notes = Column(Text, nullable=True)

    # Relationships
    tile = relationship("ServiceTile", back_populates="applications")
    status_history = relationship(
        "ApplicationStatusHistory",
        back_populates="application",
        cascade="all, delete-orphan",
        order_by="ApplicationStatusHistory.changed_at"
    )

    # Table indexes
    __table_args__ = (
        Index('idx_applications_tile_date', 'tile_id', 'booking_date'),
        Index('idx_applications_status_created', 'status', 'created_at'),
        Index('idx_applications_user_id', 'user_id'),
        Index('idx_applications_payment_idempotency_id', 'payment_idempotency_id', unique=True),
    )

    def __repr__(self):
        return f"<ServiceApplication(tile='{self.tile_id}', date='{self.booking_date}', status='{self.status}')>"

class ApplicationStatusHistory(Base):
    """Track application status changes"""
    __tablename__ = "application_status_history"

    # Foreign Keys
    application_id = Column(Uuid(as_uuid=True), ForeignKey('municipal_service_applications.id', ondelete='CASCADE'), nullable=False)
    changed_by = Column(Uuid(as_uuid=True), nullable=True)

    # Status Change Information
    from_status = Column(String(20), nullable=True)
    to_status = Column(String(20), nullable=False)
    changed_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    notes = Column(Text, nullable=True)

    # Relationships
    application = relationship("ServiceApplication", back_populates="status_history")

    def __repr__(self):
        return f"<ApplicationStatusHistory(application='{self.application_id}', from='{self.from_status}', to='{self.to_status}')>"
