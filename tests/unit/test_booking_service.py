"""
Unit tests for booking creation: validation, best-effort zone matching and
the zone restriction switch.
"""

import asyncio
import uuid

import pytest

from api.booking_service import create_booking
from api.config import settings
from api.models import AuditLog, Booking
from api.schemas import CreateBookingRequest
from api.zone_registry import build_resolver
from src.coverage.errors import GeocodingError, MatchingError, ValidationError


def request_for(member, **overrides):
    fields = dict(
        family_member_id=str(member.id),
        contact_phone="204-555-0100",
        contact_email="jane@example.com",
        visit_type="house_call",
        lat=5.0,
        lng=5.0,
    )
    fields.update(overrides)
    return CreateBookingRequest(**fields)


def book(db, body, resolver=None):
    return asyncio.run(create_booking(db, None, body, resolver or build_resolver(db)))


class FailingResolver:
    def find_matching_zone(self, lat, lng):
        raise MatchingError("zone store down")


class TestValidation:
    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"family_member_id": None}, "Please select a patient"),
            ({"contact_phone": ""}, "Phone number is required"),
            ({"contact_email": None}, "Email address is required"),
            ({"visit_type": "video_call"}, "Please select visit type"),
            ({"visit_type": None}, "Please select visit type"),
            ({"lat": None, "lng": None}, "Location is required"),
        ],
    )
    def test_required_fields(self, db, family_member, geocoder, overrides, message):
        with pytest.raises(ValidationError, match=message):
            book(db, request_for(family_member, **overrides))
        assert db.query(Booking).count() == 0

    def test_unknown_patient(self, db, family_member, geocoder):
        body = request_for(family_member, family_member_id=str(uuid.uuid4()))
        with pytest.raises(ValidationError, match="Patient not found"):
            book(db, body)

    def test_malformed_patient_id(self, db, family_member, geocoder):
        with pytest.raises(ValidationError, match="Patient not found"):
            book(db, request_for(family_member, family_member_id="abc"))

    def test_inactive_patient(self, db, family_member, geocoder):
        family_member.is_active = False
        db.commit()
        with pytest.raises(ValidationError, match="Patient not found"):
            book(db, request_for(family_member))

    def test_ungeocodable_address(self, db, family_member, geocoder):
        body = request_for(family_member, lat=None, lng=None, address="zzz")
        with pytest.raises(GeocodingError):
            book(db, body)


class TestZoneStamping:
    def test_matched_zone_recorded(self, db, family_member, zone_factory, geocoder):
        zone = zone_factory("Central")

        booking = book(db, request_for(family_member))

        assert booking.zone_id == zone.id
        assert booking.matched_zone_name == "Central"
        assert booking.status == "new"
        assert booking.confirmation_method == "email"
        assert booking.patient_info["first_name"] == "Jane"
        assert booking.patient_info["dob"] == "1980-05-17"
        assert booking.safety_acknowledgements == {
            "not_for_emergencies": True,
            "call_911_acknowledged": True,
        }

    def test_out_of_area_accepted_without_restriction(self, db, family_member, zone_factory, geocoder):
        zone_factory("Central")
        booking = book(db, request_for(family_member, lat=50.0, lng=50.0))

        assert booking.zone_id is None
        assert booking.matched_zone_name is None
        assert booking.address_raw == "Current Location (50.000000, 50.000000)"

    def test_matching_failure_books_without_zone(self, db, family_member, geocoder):
        booking = book(db, request_for(family_member), resolver=FailingResolver())
        assert booking.zone_id is None

    def test_typed_address_geocoded(self, db, family_member, zone_factory, geocoder):
        zone_factory("Central")
        geocoder.add_result(5.5, 5.5)

        booking = book(db, request_for(family_member, lat=None, lng=None, address="100 Main St"))

        assert booking.address_raw == "100 Main St"
        assert booking.city == "Winnipeg"
        assert (booking.lat, booking.lng) == (5.5, 5.5)
        assert booking.matched_zone_name == "Central"

    def test_audit_entry_written(self, db, family_member, geocoder):
        booking = book(db, request_for(family_member))
        entry = db.query(AuditLog).filter(AuditLog.entity_id == booking.id).one()
        assert entry.action == "booking_created"
        assert entry.entity_type == "booking"


class TestZoneRestriction:
    @pytest.fixture(autouse=True)
    def enforce(self, monkeypatch):
        monkeypatch.setattr(settings, "enforce_zone_restriction", True)

    def test_out_of_area_rejected(self, db, family_member, zone_factory, geocoder):
        zone_factory("Central")
        with pytest.raises(ValidationError, match="don't currently serve"):
            book(db, request_for(family_member, lat=50.0, lng=50.0))

    def test_unavailable_visit_type_rejected(self, db, family_member, zone_factory, geocoder):
        zone_factory("Phones only", allow_house_call=False)
        with pytest.raises(ValidationError, match="House call"):
            book(db, request_for(family_member, visit_type="house_call"))

    def test_available_visit_type_accepted(self, db, family_member, zone_factory, geocoder):
        zone_factory("Phones only", allow_house_call=False)
        booking = book(db, request_for(family_member, visit_type="phone_call"))
        assert booking.matched_zone_name == "Phones only"
