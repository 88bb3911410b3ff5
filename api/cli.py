#!/usr/bin/env python3
"""
HOUSECALL API CLI Tool.

Command-line interface for administrative tasks:
- API key management (create, list, revoke)
- Zone listing and coverage checks against the live database
- Database operations
- Health checks

Usage:
    python -m api.cli create-api-key --name "Dispatch Desk" --admin
    python -m api.cli list-api-keys
    python -m api.cli revoke-api-key --id <uuid>
    python -m api.cli list-zones
    python -m api.cli check-coverage --lat 49.8951 --lng -97.1384
    python -m api.cli check-health
"""
import argparse
import sys
from datetime import datetime, timedelta, timezone
from typing import Optional


def create_api_key(
    name: str,
    admin: bool = False,
    rate_limit: int = 1000,
    expires_days: Optional[int] = None
) -> None:
    """Create a new API key."""
    from api.database import get_db_context
    from api.auth import create_api_key_in_db

    expires_at = None
    if expires_days:
        expires_at = datetime.now(timezone.utc) + timedelta(days=expires_days)

    with get_db_context() as db:
        plain_key, api_key_obj = create_api_key_in_db(
            db=db,
            name=name,
            is_admin=admin,
            rate_limit=rate_limit,
            expires_at=expires_at,
        )
        key_id = api_key_obj.id

    print("\n" + "=" * 60)
    print("API KEY CREATED SUCCESSFULLY")
    print("=" * 60)
    print(f"\nName: {name}")
    print(f"Key ID: {key_id}")
    print(f"Role: {'administrator' if admin else 'account'}")
    print(f"Rate Limit: {rate_limit} requests/hour")
    if expires_at:
        print(f"Expires: {expires_at.isoformat()}")
    else:
        print("Expires: Never")
    print(f"\n{'*' * 60}")
    print(f"API KEY: {plain_key}")
    print(f"{'*' * 60}")
    print("\nSAVE THIS KEY NOW - IT CANNOT BE RETRIEVED LATER!")
    print("=" * 60 + "\n")


def list_api_keys() -> None:
    """List all API keys."""
    from api.database import get_db_context
    from api.models import APIKey

    with get_db_context() as db:
        keys = db.query(APIKey).order_by(APIKey.created_at.desc()).all()

        if not keys:
            print("\nNo API keys found.")
            return

        print("\n" + "=" * 86)
        print("API KEYS")
        print("=" * 86)
        print(f"{'ID':<36} {'Name':<20} {'Active':<8} {'Admin':<6} {'Last Used':<16}")
        print("-" * 86)

        for key in keys:
            last_used = key.last_used_at.strftime("%Y-%m-%d %H:%M") if key.last_used_at else "Never"
            print(
                f"{str(key.id):<36} "
                f"{key.name[:18]:<20} "
                f"{'Yes' if key.is_active else 'No':<8} "
                f"{'Yes' if key.is_admin else 'No':<6} "
                f"{last_used:<16}"
            )

        print("=" * 86)
        print(f"Total: {len(keys)} key(s)\n")


def revoke_api_key(key_id: str) -> None:
    """Revoke an API key."""
    from api.database import get_db_context
    from api.auth import revoke_api_key as revoke_key

    with get_db_context() as db:
        success = revoke_key(db, key_id)

    if success:
        print(f"\nAPI key {key_id} has been revoked.")
    else:
        print(f"\nError: API key {key_id} not found.")
        sys.exit(1)


def list_zones() -> None:
    """List zones in matching order."""
    from api.database import get_db_context
    from api.zone_registry import ZoneRegistry

    with get_db_context() as db:
        zones = ZoneRegistry(db).list_zones()

        if not zones:
            print("\nNo zones defined. Every location is out of service.")
            return

        print("\n" + "=" * 92)
        print("ZONES (matching order)")
        print("=" * 92)
        print(f"{'ID':<36} {'Name':<24} {'Prio':>5} {'Active':<7} {'Phone':<7} {'House':<7}")
        print("-" * 92)

        for zone in zones:
            phone = "full" if zone.phone_calls_full else ("yes" if zone.allow_phone_call else "no")
            house = "full" if zone.house_calls_full else ("yes" if zone.allow_house_call else "no")
            print(
                f"{str(zone.id):<36} "
                f"{zone.name[:22]:<24} "
                f"{zone.priority:>5} "
                f"{'Yes' if zone.is_active else 'No':<7} "
                f"{phone:<7} "
                f"{house:<7}"
            )

        print("=" * 92)
        print(f"Total: {len(zones)} zone(s)\n")


def check_coverage(lat: float, lng: float) -> None:
    """Resolve a coordinate against the active zones."""
    from api.database import get_db_context
    from api.zone_registry import build_resolver
    from src.coverage.errors import MatchingError
    from src.coverage.resolver import ZoneOutcome, get_available_visit_types

    with get_db_context() as db:
        resolver = build_resolver(db)
        try:
            match = resolver.find_matching_zone(lat, lng)
        except MatchingError as e:
            print(f"\nError: {e}")
            sys.exit(1)

        available = get_available_visit_types(match.zone)

        print(f"\nLocation: {lat:.6f}, {lng:.6f}")
        for evaluation in match.evaluations:
            line = f"  {evaluation.zone_id}  {evaluation.outcome.value}"
            if evaluation.outcome is ZoneOutcome.SKIPPED:
                line += f"  ({evaluation.reason})"
            print(line)

        print(f"\nZone: {match.zone.name if match.zone is not None else 'none'}")
        print(f"Phone call: {'yes' if available.phone_call else 'no'}")
        print(f"House call: {'yes' if available.house_call else 'no'}")
        print(f"Message: {available.message}\n")


def check_health(url: str = "http://localhost:8000/api/health") -> None:
    """Check API health."""
    import requests

    try:
        response = requests.get(url, timeout=5)
    except requests.exceptions.ConnectionError:
        print("\nError: Could not connect to API. Is the server running?")
        sys.exit(1)
    except requests.exceptions.RequestException as e:
        print(f"\nError: {e}")
        sys.exit(1)

    if response.status_code != 200:
        print(f"\nAPI returned status code: {response.status_code}")
        sys.exit(1)

    data = response.json()
    print(f"\nAPI Status: {data.get('status', 'unknown')}")
    print(f"Version: {data.get('version', 'unknown')}")
    print(f"Timestamp: {data.get('timestamp', 'unknown')}")
    for name, component in data.get("components", {}).items():
        print(f"  {name}: {component.get('status')} - {component.get('message')}")


def init_db() -> None:
    """Initialize the database."""
    from api.database import init_db as do_init

    print("Initializing database...")
    do_init()
    print("Database initialized successfully.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="HOUSECALL API CLI Tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Create an administrator key:
    python -m api.cli create-api-key --name "Dispatch Desk" --admin

  Create an account key that expires in 90 days:
    python -m api.cli create-api-key --name "Pilot Family" --expires-days 90

  List all API keys:
    python -m api.cli list-api-keys

  Revoke an API key:
    python -m api.cli revoke-api-key --id 12345678-1234-1234-1234-123456789abc

  List zones in matching order:
    python -m api.cli list-zones

  Check which zone serves a coordinate:
    python -m api.cli check-coverage --lat 49.8951 --lng -97.1384

  Initialize database:
    python -m api.cli init-db
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    create_parser = subparsers.add_parser("create-api-key", help="Create a new API key")
    create_parser.add_argument("--name", required=True, help="Name for the API key")
    create_parser.add_argument(
        "--admin",
        action="store_true",
        help="Grant administrator access"
    )
    create_parser.add_argument(
        "--rate-limit",
        type=int,
        default=1000,
        help="Rate limit (requests per hour, default: 1000)"
    )
    create_parser.add_argument(
        "--expires-days",
        type=int,
        help="Number of days until expiration (default: never)"
    )

    subparsers.add_parser("list-api-keys", help="List all API keys")

    revoke_parser = subparsers.add_parser("revoke-api-key", help="Revoke an API key")
    revoke_parser.add_argument("--id", required=True, help="UUID of the API key to revoke")

    subparsers.add_parser("list-zones", help="List zones in matching order")

    coverage_parser = subparsers.add_parser("check-coverage", help="Resolve a coordinate to a zone")
    coverage_parser.add_argument("--lat", type=float, required=True, help="Latitude")
    coverage_parser.add_argument("--lng", type=float, required=True, help="Longitude")

    health_parser = subparsers.add_parser("check-health", help="Check API health")
    health_parser.add_argument(
        "--url",
        default="http://localhost:8000/api/health",
        help="Health endpoint URL"
    )

    subparsers.add_parser("init-db", help="Initialize the database")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "create-api-key":
        create_api_key(args.name, args.admin, args.rate_limit, args.expires_days)
    elif args.command == "list-api-keys":
        list_api_keys()
    elif args.command == "revoke-api-key":
        revoke_api_key(args.id)
    elif args.command == "list-zones":
        list_zones()
    elif args.command == "check-coverage":
        check_coverage(args.lat, args.lng)
    elif args.command == "check-health":
        check_health(args.url)
    elif args.command == "init-db":
        init_db()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
