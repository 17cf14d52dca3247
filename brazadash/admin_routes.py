from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from brazadash.auth import require_admin
from brazadash.database import get_db
from brazadash.models import Booking, Order, Restaurant, ServiceProvider
from brazadash.reports import FinancialReport, build_financial_report, resolve_range

router = APIRouter(prefix="/admin")


@router.get("/financial-report", response_model=FinancialReport)
def financial_report(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    week_offset: int = Query(0, alias="weekOffset"),
    user_id: str = Depends(require_admin),
    db: Session = Depends(get_db),
):
    rng = resolve_range(start_date, end_date, week_offset)

    orders = (
        db.query(Order)
        .filter(Order.created_at >= rng.start, Order.created_at < rng.end_exclusive)
        .filter(Order.status != "cancelled")
        .all()
    )
    bookings = (
        db.query(Booking)
        .filter(Booking.created_at >= rng.start, Booking.created_at < rng.end_exclusive)
        .filter(Booking.is_paid.is_(True), Booking.status != "cancelled")
        .all()
    )
    return build_financial_report(
        rng,
        db.query(Restaurant).all(),
        db.query(ServiceProvider).all(),
        orders,
        bookings,
    )
