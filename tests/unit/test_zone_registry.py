"""
Unit tests for the zone registry (SQLite in-memory, via conftest db fixture).
"""

import uuid
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import IntegrityError

from api.models import Booking, Zone
from api.zone_registry import SEQUENCE_ATTEMPTS, ZONE_DEFAULTS, ZoneRegistry, build_resolver
from src.coverage.errors import NotFoundError, ValidationError


def square(min_lng, min_lat, max_lng, max_lat):
    return {
        "type": "Polygon",
        "coordinates": [[
            [min_lng, min_lat], [max_lng, min_lat], [max_lng, max_lat],
            [min_lng, max_lat], [min_lng, min_lat],
        ]],
    }


def snapshot(zone):
    return {
        "name": zone.name,
        "boundary_data": zone.boundary_data,
        "allow_phone_call": zone.allow_phone_call,
        "allow_house_call": zone.allow_house_call,
        "phone_calls_full": zone.phone_calls_full,
        "house_calls_full": zone.house_calls_full,
        "priority": zone.priority,
        "is_active": zone.is_active,
        "sequence": zone.sequence,
    }


class TestCreateZone:
    """Tests for ZoneRegistry.create_zone."""

    def test_defaults_applied(self, db):
        zone = ZoneRegistry(db).create_zone({"name": "Central", "boundary": square(0, 0, 1, 1)})

        assert isinstance(zone.id, uuid.UUID)
        for key, value in ZONE_DEFAULTS.items():
            assert getattr(zone, key) == value
        assert zone.boundary_data["type"] == "Polygon"

    def test_explicit_fields(self, db):
        zone = ZoneRegistry(db).create_zone({
            "name": "  East  ",
            "boundary": square(0, 0, 1, 1),
            "allow_house_call": False,
            "priority": 7,
        })
        assert zone.name == "East"
        assert zone.allow_house_call is False
        assert zone.priority == 7

    def test_sequence_increases(self, db, zone_factory):
        first = zone_factory("First")
        second = zone_factory("Second")
        assert second.sequence > first.sequence

    @pytest.mark.parametrize(
        "data",
        [
            {"boundary": square(0, 0, 1, 1)},
            {"name": "", "boundary": square(0, 0, 1, 1)},
            {"name": "   ", "boundary": square(0, 0, 1, 1)},
            {"name": "No boundary"},
            {"name": "Bad type", "boundary": {"type": "Point", "coordinates": [0, 0]}},
            {"name": "Open ring", "boundary": {"type": "Polygon", "coordinates": [[[0, 0], [1, 0], [1, 1], [0, 1]]]}},
            {"name": "Line", "boundary": {"type": "Polygon", "coordinates": [[[0, 0], [5, 0], [10, 0], [0, 0]]]}},
            {"name": "Point", "boundary": {"type": "Polygon", "coordinates": [[[5, 5], [5, 5], [5, 5], [5, 5]]]}},
            {"name": "Bad flag", "boundary": square(0, 0, 1, 1), "allow_phone_call": "yes"},
            {"name": "Bad priority", "boundary": square(0, 0, 1, 1), "priority": "high"},
        ],
    )
    def test_invalid_input_rejected(self, db, data):
        with pytest.raises(ValidationError):
            ZoneRegistry(db).create_zone(data)
        assert db.query(Zone).count() == 0


class TestUpdateZone:
    """Partial update semantics."""

    def test_only_given_fields_change(self, db, zone_factory):
        zone = zone_factory("Central", phone_calls_full=True, priority=2)
        before = snapshot(zone)

        updated = ZoneRegistry(db).update_zone(zone.id, {"priority": 9})

        after = snapshot(updated)
        assert after.pop("priority") == 9
        before.pop("priority")
        assert after == before

    def test_boundary_update(self, db, zone_factory):
        zone = zone_factory("Central")
        ZoneRegistry(db).update_zone(str(zone.id), {"boundary": square(20, 20, 30, 30)})
        assert zone.boundary_data["coordinates"][0][0] == [20.0, 20.0]

    def test_unknown_id(self, db):
        with pytest.raises(NotFoundError):
            ZoneRegistry(db).update_zone(uuid.uuid4(), {"priority": 1})

    def test_malformed_id_is_not_found(self, db):
        with pytest.raises(NotFoundError):
            ZoneRegistry(db).update_zone("not-a-uuid", {"priority": 1})

    @pytest.mark.parametrize(
        "partial",
        [
            {"is_active": "false"},
            {"house_calls_full": 1},
            {"name": ""},
            {"boundary": {"type": "Polygon", "coordinates": [[[0, 0], [1, 1]]]}},
            {"color": "red"},
        ],
    )
    def test_invalid_update_leaves_zone_unchanged(self, db, zone_factory, partial):
        zone = zone_factory("Central")
        before = snapshot(zone)

        with pytest.raises(ValidationError):
            ZoneRegistry(db).update_zone(zone.id, partial)

        db.refresh(zone)
        assert snapshot(zone) == before


class TestActivationAndDeletion:
    def test_set_active_only_toggles_flag(self, db, zone_factory):
        zone = zone_factory("Central", priority=3)
        before = snapshot(zone)

        ZoneRegistry(db).set_active(zone.id, False)

        after = snapshot(zone)
        assert after.pop("is_active") is False
        before.pop("is_active")
        assert after == before

    def test_set_active_requires_boolean(self, db, zone_factory):
        zone = zone_factory("Central")
        with pytest.raises(ValidationError):
            ZoneRegistry(db).set_active(zone.id, "no")

    def test_inactive_zone_not_listed_for_matching(self, db, zone_factory):
        zone = zone_factory("Central")
        registry = ZoneRegistry(db)
        registry.set_active(zone.id, False)

        assert registry.list_active_zones_by_priority() == []
        assert registry.list_zones() == [zone]

    def test_delete_zone_keeps_booking_zone_name(self, db, zone_factory):
        zone = zone_factory("Central")
        booking = Booking(
            visit_type="phone_call",
            address_raw="1 Test St",
            lat=5.0,
            lng=5.0,
            zone_id=zone.id,
            matched_zone_name=zone.name,
            patient_info={"first_name": "Jane"},
            contact_phone="555-0100",
        )
        db.add(booking)
        db.commit()

        ZoneRegistry(db).delete_zone(zone.id)
        db.refresh(booking)

        assert booking.zone_id is None
        assert booking.matched_zone_name == "Central"
        assert db.get(Zone, zone.id) is None

    def test_delete_unknown_zone(self, db):
        with pytest.raises(NotFoundError):
            ZoneRegistry(db).delete_zone(uuid.uuid4())


class TestMatchingOrder:
    """Ordering used by the resolver."""

    def test_priority_descending(self, db, zone_factory):
        low = zone_factory("Low", priority=1)
        high = zone_factory("High", priority=5)
        assert ZoneRegistry(db).list_active_zones_by_priority() == [high, low]

    def test_equal_priority_most_recent_first(self, db, zone_factory):
        older = zone_factory("Older")
        newer = zone_factory("Newer")
        assert ZoneRegistry(db).list_active_zones_by_priority() == [newer, older]

    def test_overlap_resolved_by_priority(self, db, zone_factory):
        zone_factory("Wide", boundary=square(-10, -10, 20, 20), priority=1)
        zone_factory("Downtown", boundary=square(4, 4, 6, 6), priority=10)

        resolver = build_resolver(db)
        assert resolver.find_matching_zone(5, 5).zone.name == "Downtown"
        assert resolver.find_matching_zone(15, 15).zone.name == "Wide"

    def test_overlap_tie_is_deterministic(self, db, zone_factory):
        zone_factory("First")
        zone_factory("Second")

        resolver = build_resolver(db)
        names = {resolver.find_matching_zone(5, 5).zone.name for _ in range(5)}
        assert names == {"Second"}

    def test_corrupt_stored_boundary_is_skipped(self, db, zone_factory):
        corrupt = zone_factory("Corrupt", priority=10)
        zone_factory("Fallback", priority=1)
        corrupt.boundary_data = {"type": "Polygon", "coordinates": "garbage"}
        db.commit()

        result = build_resolver(db, fail_closed=False).find_matching_zone(5, 5)
        assert result.zone.name == "Fallback"
        assert result.skipped[0].zone_id == str(corrupt.id)


class TestSequenceAllocation:
    """Concurrent creates that pick the same sequence number."""

    @staticmethod
    def collision():
        return IntegrityError("INSERT INTO zones", {}, Exception("UNIQUE constraint failed: zones.sequence"))

    def test_retries_with_fresh_sequence(self):
        session = MagicMock()
        session.query.return_value.scalar.side_effect = [4, 5]
        session.commit.side_effect = [self.collision(), None]

        zone = ZoneRegistry(session).create_zone({"name": "Central", "boundary": square(0, 0, 1, 1)})

        assert zone.sequence == 6
        session.rollback.assert_called_once()
        assert session.commit.call_count == 2

    def test_gives_up_after_repeated_collisions(self):
        session = MagicMock()
        session.query.return_value.scalar.return_value = 1
        session.commit.side_effect = self.collision()

        with pytest.raises(IntegrityError):
            ZoneRegistry(session).create_zone({"name": "Central", "boundary": square(0, 0, 1, 1)})
        assert session.commit.call_count == SEQUENCE_ATTEMPTS
