"""
Admin dashboard API router.

Booking counts for today, this week and this month, breakdowns by status,
visit type, day and zone, and the latest audit activity. All endpoints
require an administrator key.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func

from api.audit import MAX_AUDIT_ROWS, list_audit_logs
from api.auth import require_admin
from api.database import get_db
from api.models import APIKey, Booking, Zone
from api.routers.admin import audit_to_response
from api.schemas import (
    AuditLogListResponse,
    DailyCount,
    DashboardChartsResponse,
    DashboardOverview,
    DashboardStatsResponse,
    RecentBooking,
    ZoneCount,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dashboard", tags=["Admin: Dashboard"])

PERIOD_DAYS = {"7days": 7, "30days": 30, "90days": 90}
RECENT_BOOKINGS = 10
TOP_ZONES = 10


def _count_since(db, since: datetime) -> int:
    return db.query(func.count(Booking.id)).filter(Booking.created_at >= since).scalar()


def _grouped_counts(db, column):
    rows = db.query(column, func.count(Booking.id)).group_by(column).all()
    return {key: count for key, count in rows}


@router.get("/stats", response_model=DashboardStatsResponse)
async def dashboard_stats(
    admin: Optional[APIKey] = Depends(require_admin),
    db=Depends(get_db),
):
    """Booking totals (all time, today, week from Sunday, month) and breakdowns."""
    now = datetime.now(timezone.utc)
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    # Sunday-based week
    week_start = today - timedelta(days=(today.weekday() + 1) % 7)
    month_start = today.replace(day=1)

    overview = DashboardOverview(
        total_bookings=db.query(func.count(Booking.id)).scalar(),
        today_bookings=_count_since(db, today),
        week_bookings=_count_since(db, week_start),
        month_bookings=_count_since(db, month_start),
        total_accounts=(
            db.query(func.count(APIKey.id))
            .filter(APIKey.is_admin.is_(False), APIKey.is_active.is_(True))
            .scalar()
        ),
        total_zones=db.query(func.count(Zone.id)).scalar(),
    )

    recent = (
        db.query(Booking)
        .order_by(Booking.created_at.desc())
        .limit(RECENT_BOOKINGS)
        .all()
    )

    return DashboardStatsResponse(
        overview=overview,
        bookings_by_status=_grouped_counts(db, Booking.status),
        bookings_by_visit_type=_grouped_counts(db, Booking.visit_type),
        recent_bookings=[
            RecentBooking(
                id=str(b.id),
                visit_type=b.visit_type,
                status=b.status,
                matched_zone_name=b.matched_zone_name,
                city=b.city,
                created_at=b.created_at,
            )
            for b in recent
        ],
    )


@router.get("/charts", response_model=DashboardChartsResponse)
async def dashboard_charts(
    period: Literal["7days", "30days", "90days"] = Query("7days"),
    admin: Optional[APIKey] = Depends(require_admin),
    db=Depends(get_db),
):
    """Bookings per day and the busiest zones over the period."""
    end_date = datetime.now(timezone.utc)
    start_date = end_date - timedelta(days=PERIOD_DAYS[period])

    day = func.date(Booking.created_at)
    per_day = (
        db.query(day, func.count(Booking.id))
        .filter(Booking.created_at >= start_date, Booking.created_at <= end_date)
        .group_by(day)
        .order_by(day)
        .all()
    )

    booking_count = func.count(Booking.id)
    per_zone = (
        db.query(Booking.zone_id, Zone.name, booking_count)
        .outerjoin(Zone, Booking.zone_id == Zone.id)
        .filter(Booking.created_at >= start_date, Booking.created_at <= end_date)
        .group_by(Booking.zone_id, Zone.name)
        .order_by(booking_count.desc())
        .limit(TOP_ZONES)
        .all()
    )

    return DashboardChartsResponse(
        period=period,
        start_date=start_date,
        end_date=end_date,
        bookings_over_time=[DailyCount(date=str(d), count=c) for d, c in per_day],
        bookings_by_zone=[
            ZoneCount(
                zone_id=str(zone_id) if zone_id else None,
                zone_name=name or "Unknown",
                count=count,
            )
            for zone_id, name, count in per_zone
        ],
    )


@router.get("/activity", response_model=AuditLogListResponse)
async def recent_activity(
    limit: int = Query(20, ge=1, le=MAX_AUDIT_ROWS),
    admin: Optional[APIKey] = Depends(require_admin),
    db=Depends(get_db),
):
    """Latest audit entries, newest first."""
    entries = list_audit_logs(db, limit=limit)
    return AuditLogListResponse(
        count=len(entries),
        audit_logs=[audit_to_response(e) for e in entries],
    )
