"""
Unit tests for the coverage resolver (no database).
"""

import uuid
from types import SimpleNamespace

import pytest

from src.coverage.errors import MatchingError
from src.coverage.resolver import (
    MESSAGE_BOTH,
    MESSAGE_HOUSE_ONLY,
    MESSAGE_NOT_SERVED,
    MESSAGE_PHONE_ONLY,
    CoverageResolver,
    ZoneOutcome,
    evaluate_zone,
    get_available_visit_types,
)


def square(min_lng, min_lat, max_lng, max_lat):
    return {
        "type": "Polygon",
        "coordinates": [[
            [min_lng, min_lat], [max_lng, min_lat], [max_lng, max_lat],
            [min_lng, max_lat], [min_lng, min_lat],
        ]],
    }


def make_zone(name, boundary=None, **overrides):
    fields = dict(
        id=uuid.uuid4(),
        name=name,
        boundary_data=boundary or square(0, 0, 10, 10),
        allow_phone_call=True,
        allow_house_call=True,
        phone_calls_full=False,
        house_calls_full=False,
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


class StaticZones:
    """Zone source returning a fixed list, already in matching order."""

    def __init__(self, *zones):
        self.zones = list(zones)
        self.calls = 0

    def list_active_zones_by_priority(self):
        self.calls += 1
        return self.zones


class BrokenZones:
    def list_active_zones_by_priority(self):
        raise RuntimeError("database unavailable")


class TestGetAvailableVisitTypes:
    """Availability flags and messages."""

    def test_no_zone(self):
        result = get_available_visit_types(None)
        assert result.phone_call is False
        assert result.house_call is False
        assert result.message == MESSAGE_NOT_SERVED
        assert result.zone_name is None
        assert "zone_name" not in result.to_dict()

    @pytest.mark.parametrize(
        "overrides, phone, house, message",
        [
            ({}, True, True, MESSAGE_BOTH),
            ({"allow_house_call": False}, True, False, MESSAGE_PHONE_ONLY),
            ({"house_calls_full": True}, True, False, MESSAGE_PHONE_ONLY),
            ({"allow_phone_call": False}, False, True, MESSAGE_HOUSE_ONLY),
            ({"phone_calls_full": True}, False, True, MESSAGE_HOUSE_ONLY),
            ({"phone_calls_full": True, "house_calls_full": True}, False, False, MESSAGE_NOT_SERVED),
        ],
    )
    def test_flags(self, overrides, phone, house, message):
        result = get_available_visit_types(make_zone("North", **overrides))
        assert result.phone_call is phone
        assert result.house_call is house
        assert result.message == message
        assert result.zone_name == "North"

    def test_full_zone_still_named(self):
        zone = make_zone("Full", phone_calls_full=True, house_calls_full=True)
        assert get_available_visit_types(zone).to_dict()["zone_name"] == "Full"


class TestFindMatchingZone:
    """Priority-ordered first-match semantics."""

    def test_no_zones_is_no_match(self):
        result = CoverageResolver(StaticZones()).find_matching_zone(5, 5)
        assert result.zone is None
        assert not result.matched
        assert result.evaluations == []

    def test_outside_all_zones(self):
        zones = StaticZones(make_zone("A"))
        result = CoverageResolver(zones).find_matching_zone(50, 50)
        assert result.zone is None
        assert [e.outcome for e in result.evaluations] == [ZoneOutcome.NO_MATCH]

    def test_first_in_order_wins(self):
        high = make_zone("High")
        low = make_zone("Low")
        result = CoverageResolver(StaticZones(high, low)).find_matching_zone(5, 5)
        assert result.zone is high
        assert len(result.evaluations) == 1

    def test_skips_non_matching_zone_before_match(self):
        far = make_zone("Far", boundary=square(20, 20, 30, 30))
        near = make_zone("Near")
        result = CoverageResolver(StaticZones(far, near)).find_matching_zone(5, 5)
        assert result.zone is near
        assert [e.outcome for e in result.evaluations] == [
            ZoneOutcome.NO_MATCH,
            ZoneOutcome.MATCHED,
        ]

    def test_zones_read_fresh_each_call(self):
        zones = StaticZones(make_zone("A"))
        resolver = CoverageResolver(zones)
        resolver.find_matching_zone(5, 5)
        zones.zones = []
        assert resolver.find_matching_zone(5, 5).zone is None
        assert zones.calls == 2

    def test_malformed_boundary_skipped(self, caplog):
        corrupt = make_zone("Corrupt", boundary={"type": "Polygon", "coordinates": [[[0, 0]]]})
        good = make_zone("Good")
        result = CoverageResolver(StaticZones(corrupt, good)).find_matching_zone(5, 5)

        assert result.zone is good
        assert [e.zone_id for e in result.skipped] == [str(corrupt.id)]
        assert str(corrupt.id) in caplog.text

    def test_non_mapping_boundary_skipped(self):
        corrupt = make_zone("Corrupt", boundary="not geojson")
        result = CoverageResolver(StaticZones(corrupt)).find_matching_zone(5, 5)
        assert result.zone is None
        assert result.skipped[0].outcome is ZoneOutcome.SKIPPED

    def test_zero_area_stored_boundary_never_matches(self):
        point = make_zone("Point", boundary={"type": "Polygon", "coordinates": [[[5, 5]] * 4]})
        result = CoverageResolver(StaticZones(point)).find_matching_zone(5, 5)
        assert result.zone is None
        assert result.skipped[0].zone_id == str(point.id)

    def test_fail_closed_raises_with_zone_id(self):
        corrupt = make_zone("Corrupt", boundary={"type": "Circle", "coordinates": []})
        resolver = CoverageResolver(StaticZones(corrupt, make_zone("Good")), fail_closed=True)

        with pytest.raises(MatchingError) as exc_info:
            resolver.find_matching_zone(5, 5)
        assert exc_info.value.zone_id == str(corrupt.id)
        assert str(corrupt.id) in str(exc_info.value)

    def test_registry_failure_raises_matching_error(self):
        with pytest.raises(MatchingError):
            CoverageResolver(BrokenZones()).find_matching_zone(5, 5)


class TestEvaluateZone:
    def test_matched(self):
        evaluation = evaluate_zone(make_zone("A"), 5, 5)
        assert evaluation.outcome is ZoneOutcome.MATCHED
        assert evaluation.reason is None

    def test_skipped_has_reason(self):
        evaluation = evaluate_zone(make_zone("A", boundary={"coordinates": []}), 5, 5)
        assert evaluation.outcome is ZoneOutcome.SKIPPED
        assert evaluation.reason


class TestCheckCoverage:
    """check_coverage composition."""

    def test_covered_location(self):
        zone = make_zone("Winnipeg Central")
        result = CoverageResolver(StaticZones(zone)).check_coverage("123 Main St", 5, 5)

        assert result.is_in_service_area
        data = result.to_dict()
        assert data["address"] == "123 Main St"
        assert data["lat"] == 5 and data["lng"] == 5
        assert data["zone"] == {"id": str(zone.id), "name": "Winnipeg Central"}
        assert data["available_types"]["message"] == MESSAGE_BOTH
        assert data["is_in_service_area"] is True

    def test_uncovered_location(self):
        result = CoverageResolver(StaticZones(make_zone("A"))).check_coverage("Far away", 50, 50)
        data = result.to_dict()
        assert data["zone"] is None
        assert data["is_in_service_area"] is False
        assert data["available_types"] == {
            "phone_call": False,
            "house_call": False,
            "message": MESSAGE_NOT_SERVED,
        }

    def test_matched_but_full_is_not_in_service_area(self):
        zone = make_zone("Full", phone_calls_full=True, house_calls_full=True)
        result = CoverageResolver(StaticZones(zone)).check_coverage("x", 5, 5)
        assert result.zone.name == "Full"
        assert not result.is_in_service_area

    def test_zone_ref_exposes_only_id_and_name(self):
        result = CoverageResolver(StaticZones(make_zone("A"))).check_coverage("x", 5, 5)
        assert set(result.to_dict()["zone"]) == {"id", "name"}
