# ================================
# BOOKING API ROUTES (api/v1/bookings.py)
# ================================

from typing import List
from datetime import date
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
import logging
import uuid

from app.config import settings
from app.dependencies import get_db, get_current_user_id, is_staff_caller, require_role
from app.services.booking_service import BookingService
from app.schemas.booking import (
    BookingCreate,
    BookingResponse,
    BookedSlot,
    ConflictCheckRequest,
    ConflictCheckResponse,
    DailyBooking,
    ApplicationStatusUpdate,
    SweepResponse
)
from app.schemas.base import FailureEnvelope

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("/bookings/conflict-check", response_model=ConflictCheckResponse)
async def check_conflict(
    data: ConflictCheckRequest,
    db: Session = Depends(get_db)
):
    """Check a proposed slot against existing bookings of the same tile and date"""
    return BookingService.check_conflict(
        db=db,
        tile_id=data.tile_id,
        booking_date=data.booking_date,
        start_time=data.start_time,
        end_time=data.end_time,
        exclude_application_id=data.exclude_application_id
    )

@router.get("/tiles/{tile_id}/booked-slots", response_model=List[BookedSlot])
async def get_booked_time_slots(
    tile_id: uuid.UUID,
    booking_date: date = Query(...),
    db: Session = Depends(get_db)
):
    """Slots already taken on a tile for a date"""
    return BookingService.get_booked_time_slots(db, tile_id, booking_date)

@router.get("/customers/{customer_id}/daily-bookings", response_model=List[DailyBooking])
async def list_daily_bookings(
    customer_id: uuid.UUID,
    booking_date: date = Query(...),
    db: Session = Depends(get_db),
    _: bool = Depends(require_role(settings.STAFF_ROLE))
):
    """Day schedule across a customer's bookable facilities (staff only)"""
    return BookingService.list_daily_bookings(db, customer_id, booking_date)

@router.post("/bookings", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    data: BookingCreate,
    db: Session = Depends(get_db),
    current_user_id: uuid.UUID = Depends(get_current_user_id)
):
    """Reserve a time slot as a draft booking"""
    booking = BookingService.create_booking(db=db, data=data, user_id=current_user_id)
    return BookingResponse.model_validate(booking)

@router.get("/bookings/{application_id}", response_model=BookingResponse)
async def get_booking(
    application_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user_id: uuid.UUID = Depends(get_current_user_id),
    is_staff: bool = Depends(is_staff_caller)
):
    """Get booking details with status history"""
    booking = BookingService.get_application_for_caller(db, application_id, current_user_id, is_staff)
    return BookingResponse.model_validate(booking)

@router.patch("/bookings/{application_id}/status", response_model=BookingResponse)
async def update_booking_status(
    application_id: uuid.UUID,
    data: ApplicationStatusUpdate,
    db: Session = Depends(get_db),
    current_user_id: uuid.UUID = Depends(get_current_user_id),
    is_staff: bool = Depends(is_staff_caller)
):
    """
    Move a booking through its lifecycle.

    Applicants may submit a free booking, cancel or withdraw their own;
    review decisions need the staff role.
    """
    booking = BookingService.update_status(
        db=db,
        application_id=application_id,
        new_status=data.status,
        changed_by=current_user_id,
        notes=data.notes,
        is_staff=is_staff
    )
    return BookingResponse.model_validate(booking)

@router.post(
    "/bookings/cleanup-abandoned",
    response_model=SweepResponse,
    responses={500: {"model": FailureEnvelope}}
)
async def cleanup_abandoned_bookings(db: Session = Depends(get_db)):
    """Expire draft bookings left unpaid past the abandonment window"""
    try:
        result = BookingService.sweep_abandoned_bookings(db)
    except Exception as e:
        logger.error(f"Abandoned booking cleanup failed: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=FailureEnvelope(error=str(e)).model_dump()
        )

    if result.expired_count == 0:
        message = "No abandoned bookings found"
    else:
        message = f"Expired {result.expired_count} abandoned time slot bookings"

    return SweepResponse(expired=result.expired_count, message=message, bookings=result.bookings)
