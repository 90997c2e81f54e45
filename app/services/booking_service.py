# ================================
# BOOKING SERVICE (services/booking_service.py)
# ================================

from typing import Optional, List
from datetime import date, datetime, timezone, timedelta
from sqlalchemy import select, update, and_, or_
from sqlalchemy.orm import Session, selectinload
import logging
import uuid

from app.config import settings
from app.models.business import (
    ServiceApplication, ApplicationStatusHistory, ServiceTile, ApplicationStatus, PaymentStatus
)
from app.schemas.booking import (
    BookingCreate, BookedSlot, ConflictingBooking, ConflictCheckResponse,
    DailyBooking, SweptBooking, SweepResult
)
from app.core.exceptions import (
    AppException, NotFoundError, BookingConflictError, InvalidTransitionError, AuthorizationError
)

logger = logging.getLogger(__name__)

S = ApplicationStatus

# Statuses that never hold a slot
NON_BLOCKING_STATUSES = frozenset({S.DENIED, S.REJECTED, S.WITHDRAWN, S.CANCELLED, S.EXPIRED})

# Valid status transitions; draft -> expired is written by the sweep only
VALID_TRANSITIONS = {
    S.DRAFT: {S.SUBMITTED, S.CANCELLED, S.WITHDRAWN},
    S.SUBMITTED: {S.UNDER_REVIEW, S.APPROVED, S.DENIED, S.REJECTED, S.WITHDRAWN, S.CANCELLED},
    S.UNDER_REVIEW: {S.APPROVED, S.DENIED, S.REJECTED, S.WITHDRAWN, S.CANCELLED},
    S.APPROVED: {S.ISSUED, S.CANCELLED, S.WITHDRAWN},
    S.ISSUED: {S.CANCELLED},
    S.DENIED: set(),
    S.REJECTED: set(),
    S.WITHDRAWN: set(),
    S.CANCELLED: set(),
    S.EXPIRED: set(),
}

# Targets an applicant may request on their own application; the rest are staff decisions
OWNER_TRANSITIONS = frozenset({S.SUBMITTED, S.CANCELLED, S.WITHDRAWN})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def abandonment_cutoff(now: datetime) -> datetime:
    return now - timedelta(minutes=settings.ABANDONED_BOOKING_TIMEOUT_MINUTES)


def intervals_overlap(new_start: str, new_end: str, existing_start: str, existing_end: Optional[str]) -> bool:
    """
    Half-open [start, end) overlap on zero-padded HH:MM:SS strings.

    A missing existing end is a point interval at its start.
    """
    existing_end = existing_end or existing_start
    return new_start < existing_end and existing_start < new_end


def blocking_condition(now: datetime):
    """
    Rows that hold their slot: not terminal, and drafts only while inside the
    abandonment window or while a payment for them is in flight.
    """
    return and_(
        ServiceApplication.status.not_in([s.value for s in NON_BLOCKING_STATUSES]),
        or_(
            ServiceApplication.status != S.DRAFT.value,
            ServiceApplication.created_at >= abandonment_cutoff(now),
            ServiceApplication.payment_status == PaymentStatus.PENDING.value
        )
    )


class BookingService:
    """Service for time-slot bookings on municipal service tiles"""

    @staticmethod
    def _blocking_bookings(
        db: Session,
        tile_id: uuid.UUID,
        booking_date: date,
        now: datetime,
        exclude_application_id: Optional[uuid.UUID] = None
    ) -> List[ServiceApplication]:
        query = select(ServiceApplication).where(
            ServiceApplication.tile_id == tile_id,
            ServiceApplication.booking_date == booking_date,
            blocking_condition(now)
        ).order_by(ServiceApplication.booking_start_time)

        if exclude_application_id:
            query = query.where(ServiceApplication.id != exclude_application_id)

        return list(db.execute(query).scalars().all())

    @staticmethod
    def check_conflict(
        db: Session,
        tile_id: uuid.UUID,
        booking_date: date,
        start_time: str,
        end_time: str,
        exclude_application_id: Optional[uuid.UUID] = None,
        now: Optional[datetime] = None
    ) -> ConflictCheckResponse:
        """Find existing bookings overlapping [start_time, end_time) on the same tile and date"""
        now = now or utcnow()

        candidates = BookingService._blocking_bookings(
            db, tile_id, booking_date, now, exclude_application_id
        )
        conflicts = [
            booking for booking in candidates
            if intervals_overlap(start_time, end_time, booking.booking_start_time, booking.booking_end_time)
        ]

        return ConflictCheckResponse(
            has_conflict=len(conflicts) > 0,
            conflicting_bookings=[ConflictingBooking.model_validate(b) for b in conflicts]
        )

    @staticmethod
    def get_booked_time_slots(
        db: Session,
        tile_id: uuid.UUID,
        booking_date: date,
        now: Optional[datetime] = None
    ) -> List[BookedSlot]:
        """Slots currently holding a tile on a date"""
        now = now or utcnow()
        bookings = BookingService._blocking_bookings(db, tile_id, booking_date, now)
        return [BookedSlot.model_validate(b) for b in bookings]

    @staticmethod
    def list_daily_bookings(
        db: Session,
        customer_id: uuid.UUID,
        booking_date: date,
        now: Optional[datetime] = None
    ) -> List[DailyBooking]:
        """Committed bookings across a customer's active time-slot tiles"""
        now = now or utcnow()

        tile_ids = db.execute(
            select(ServiceTile.id).where(
                ServiceTile.customer_id == customer_id,
                ServiceTile.has_time_slots.is_(True),
                ServiceTile.is_active.is_(True)
            )
        ).scalars().all()

        if not tile_ids:
            return []

        bookings = db.execute(
            select(ServiceApplication).where(
                ServiceApplication.tile_id.in_(tile_ids),
                ServiceApplication.booking_date == booking_date,
                ServiceApplication.status != S.DRAFT.value,
                blocking_condition(now)
            ).order_by(ServiceApplication.booking_start_time)
        ).scalars().all()

        return [DailyBooking.model_validate(b) for b in bookings]

    @staticmethod
    def _lock_tile(db: Session, tile_id: uuid.UUID) -> ServiceTile:
        """Row lock on the tile; booking writers for one tile run one at a time"""
        tile = db.execute(
            select(ServiceTile).where(ServiceTile.id == tile_id).with_for_update()
        ).scalar_one_or_none()

        if not tile:
            raise NotFoundError("Service not found")

        return tile

    @staticmethod
    def create_booking(
        db: Session,
        data: BookingCreate,
        user_id: uuid.UUID,
        now: Optional[datetime] = None
    ) -> ServiceApplication:
        """Reserve a slot as a draft; check and insert run under the tile lock in one transaction"""
        now = now or utcnow()

        try:
            tile = BookingService._lock_tile(db, data.tile_id)

            if not tile.is_active or not tile.has_time_slots:
                raise AppException("This service does not accept time slot bookings", 400, "NOT_BOOKABLE")

            result = BookingService.check_conflict(
                db, data.tile_id, data.booking_date, data.start_time, data.end_time, now=now
            )
            if result.has_conflict:
                raise BookingConflictError(
                    [b.model_dump(mode="json") for b in result.conflicting_bookings]
                )

            application = ServiceApplication(
                id=uuid.uuid4(),
                tile_id=tile.id,
                user_id=user_id,
                customer_id=tile.customer_id,
                applicant_name=data.applicant_name,
                applicant_email=data.applicant_email,
                booking_date=data.booking_date,
                booking_start_time=data.start_time,
                booking_end_time=data.end_time,
                status=S.DRAFT.value,
                base_amount_cents=tile.amount_cents,
                notes=data.notes,
                created_at=now,
                updated_at=now
            )
            db.add(application)

            db.add(ApplicationStatusHistory(
                application_id=application.id,
                from_status=None,
                to_status=S.DRAFT.value,
                changed_by=user_id,
                changed_at=now,
                notes="Booking created"
            ))

            db.commit()
        except Exception:
            db.rollback()
            raise

        db.refresh(application)
        logger.info(
            f"Booking {application.id} created as draft for tile {tile.id} on "
            f"{application.booking_date} {application.booking_start_time}-{application.booking_end_time}"
        )
        return application

    @staticmethod
    def get_application(db: Session, application_id: uuid.UUID, for_update: bool = False) -> ServiceApplication:
        query = select(ServiceApplication).where(ServiceApplication.id == application_id)
        if for_update:
            query = query.with_for_update()
        else:
            query = query.options(selectinload(ServiceApplication.status_history))

        application = db.execute(query).scalar_one_or_none()
        if not application:
            raise NotFoundError("Application not found")

        return application

    @staticmethod
    def ensure_slot_available(db: Session, application: ServiceApplication, now: Optional[datetime] = None):
        """Re-check a booking's slot, e.g. for a draft that outlived the abandonment window"""
        if application.booking_date is None:
            return

        now = now or utcnow()
        BookingService._lock_tile(db, application.tile_id)

        result = BookingService.check_conflict(
            db,
            application.tile_id,
            application.booking_date,
            application.booking_start_time,
            application.booking_end_time or application.booking_start_time,
            exclude_application_id=application.id,
            now=now
        )
        if result.has_conflict:
            raise BookingConflictError(
                [b.model_dump(mode="json") for b in result.conflicting_bookings]
            )

    @staticmethod
    def get_application_for_caller(
        db: Session,
        application_id: uuid.UUID,
        user_id: uuid.UUID,
        is_staff: bool = False
    ) -> ServiceApplication:
        """Applicants see their own applications; staff see all of them"""
        application = BookingService.get_application(db, application_id)
        if not is_staff and application.user_id != user_id:
            raise NotFoundError("Application not found")
        return application

    @staticmethod
    def transition(
        db: Session,
        application: ServiceApplication,
        new_status: ApplicationStatus,
        changed_by: Optional[uuid.UUID],
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
        recheck_slot: bool = True
    ) -> ServiceApplication:
        """Apply a status change and record it; the caller commits"""
        now = now or utcnow()
        current = S(application.status)
        new_status = S(new_status)

        if new_status not in VALID_TRANSITIONS[current]:
            raise InvalidTransitionError(current.value, new_status.value)

        if current == S.DRAFT and new_status == S.SUBMITTED and recheck_slot:
            BookingService.ensure_slot_available(db, application, now)

        application.status = new_status.value
        application.updated_at = now

        db.add(ApplicationStatusHistory(
            application_id=application.id,
            from_status=current.value,
            to_status=new_status.value,
            changed_by=changed_by,
            changed_at=now,
            notes=notes
        ))

        logger.info(f"Application {application.id} status {current.value} -> {new_status.value}")
        return application

    @staticmethod
    def authorize_status_change(
        application: ServiceApplication,
        new_status: ApplicationStatus,
        user_id: uuid.UUID,
        is_staff: bool
    ):
        """
        Who may request a status change.

        Applicants may only move their own applications, and only to the
        statuses in OWNER_TRANSITIONS. Review decisions are staff-only. A draft
        with an amount due is submitted by the payment flow, never by hand.
        """
        new_status = S(new_status)

        if not is_staff:
            if application.user_id != user_id:
                raise NotFoundError("Application not found")
            if new_status not in OWNER_TRANSITIONS:
                raise AuthorizationError(f"Only staff may set status '{new_status.value}'")

        if application.status == S.DRAFT.value:
            if application.payment_status == PaymentStatus.PENDING.value:
                raise AppException("A payment for this application is in progress", 409, "PAYMENT_IN_PROGRESS")
            if new_status == S.SUBMITTED and application.base_amount_cents:
                raise AppException("Payment is required to submit this application", 409, "PAYMENT_REQUIRED")

    @staticmethod
    def update_status(
        db: Session,
        application_id: uuid.UUID,
        new_status: ApplicationStatus,
        changed_by: uuid.UUID,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
        is_staff: bool = False
    ) -> ServiceApplication:
        """Change an application's status following the lifecycle table"""
        try:
            application = BookingService.get_application(db, application_id, for_update=True)
            BookingService.authorize_status_change(application, new_status, changed_by, is_staff)
            BookingService.transition(db, application, new_status, changed_by, notes, now)
            db.commit()
        except Exception:
            db.rollback()
            raise

        db.refresh(application)
        return application

    @staticmethod
    def sweep_abandoned_bookings(db: Session, now: Optional[datetime] = None) -> SweepResult:
        """
        Expire time-slot drafts older than the abandonment window.

        One predicate-guarded UPDATE ... RETURNING: the reported ids are exactly
        the rows this run changed, re-running finds nothing new, and rows
        created after the cutoff are never touched. Drafts with a payment in
        flight are left for the payment flow to settle.
        """
        now = now or utcnow()
        cutoff = abandonment_cutoff(now)

        try:
            expired = db.execute(
                update(ServiceApplication)
                .where(
                    ServiceApplication.status == S.DRAFT.value,
                    ServiceApplication.booking_date.is_not(None),  # Only time slot bookings
                    ServiceApplication.created_at < cutoff,
                    or_(
                        ServiceApplication.payment_status.is_(None),
                        ServiceApplication.payment_status != PaymentStatus.PENDING.value
                    )
                )
                .values(status=S.EXPIRED.value, updated_at=now)
                .returning(
                    ServiceApplication.id,
                    ServiceApplication.booking_date,
                    ServiceApplication.booking_start_time
                )
                .execution_options(synchronize_session=False)
            ).all()
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"Error expiring bookings: {e}")
            raise

        if not expired:
            logger.info("No abandoned bookings to clean up")
            return SweepResult(expired_count=0)

        logger.info(f"Expired {len(expired)} abandoned time slot bookings")

        return SweepResult(
            expired_count=len(expired),
            expired_ids=[row.id for row in expired],
            bookings=[
                SweptBooking(id=row.id, booking_date=row.booking_date, booking_start_time=row.booking_start_time)
                for row in expired
            ]
        )
