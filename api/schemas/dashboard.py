"""Admin dashboard API schemas."""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel


class DashboardOverview(BaseModel):
    total_bookings: int
    today_bookings: int
    week_bookings: int
    month_bookings: int
    total_accounts: int
    total_zones: int


class RecentBooking(BaseModel):
    id: str
    visit_type: str
    status: str
    matched_zone_name: Optional[str] = None
    city: Optional[str] = None
    created_at: datetime


class DashboardStatsResponse(BaseModel):
    """Headline counts for the admin dashboard."""
    overview: DashboardOverview
    bookings_by_status: Dict[str, int]
    bookings_by_visit_type: Dict[str, int]
    recent_bookings: List[RecentBooking]


class DailyCount(BaseModel):
    date: str
    count: int


class ZoneCount(BaseModel):
    zone_id: Optional[str] = None
    zone_name: str
    count: int


class DashboardChartsResponse(BaseModel):
    period: str
    start_date: datetime
    end_date: datetime
    bookings_over_time: List[DailyCount]
    bookings_by_zone: List[ZoneCount]
