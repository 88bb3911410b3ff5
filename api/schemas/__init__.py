"""
HOUSECALL API Pydantic schemas.

Re-exports all schema classes:
    from api.schemas import CoverageCheckRequest, ZoneResponse, ...
"""

# Common
from .common import LocationQuery, MessageResponse  # noqa: F401

# Coverage
from .coverage import (  # noqa: F401
    CoverageCheckRequest,
    ZoneRefModel,
    AvailableTypesModel,
    CoverageResponse,
)

# Zones
from .zones import (  # noqa: F401
    CreateZoneRequest,
    UpdateZoneRequest,
    SetZoneActiveRequest,
    ZoneResponse,
    ZoneListResponse,
    PublicZoneResponse,
    ZoneTestResponse,
)

# Bookings
from .bookings import (  # noqa: F401
    SafetyAcknowledgements,
    CreateBookingRequest,
    BookingResponse,
    BookingListResponse,
    AssignedProvider,
    UpdateBookingStatusRequest,
    AllowedVisitTypes,
    OverrideBookingRequest,
    HeatmapPoint,
    HeatmapResponse,
)

# Family members
from .family_members import (  # noqa: F401
    CreateFamilyMemberRequest,
    UpdateFamilyMemberRequest,
    FamilyMemberResponse,
    FamilyMemberListResponse,
)

# Audit
from .audit import AuditLogResponse, AuditLogListResponse  # noqa: F401

# Dashboard
from .dashboard import (  # noqa: F401
    DashboardOverview,
    RecentBooking,
    DashboardStatsResponse,
    DailyCount,
    ZoneCount,
    DashboardChartsResponse,
)
