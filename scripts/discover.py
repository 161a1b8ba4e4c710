#!/usr/bin/env python3
"""Run the discovery pipeline once and print the first page.

Useful for checking a catalog snapshot or endpoint from the command line.

Usage:
    # Default snapshot, popularity order
    python scripts/discover.py

    # Search and filter
    python scripts/discover.py --search rock --city oslo --sort date

    # Distance order from a fixed position, skipping the IP lookup
    python scripts/discover.py --sort distance --lat 59.91 --lon 10.75

    # JSON output
    python scripts/discover.py --json --pages 2
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


def festival_row(festival, coordinates=None) -> dict:
    """Flatten a festival for display."""
    from festival_finder.modules.geolocation.domain.distance import distance_km

    row = {
        "id": festival.id,
        "name": festival.name,
        "city": festival.city,
        "start": festival.dates.start.date().isoformat(),
        "full_pass": festival.price.full_pass,
        "currency": festival.price.currency,
        "popularity": festival.popularity,
        "genres": list(festival.genres),
    }
    if coordinates is not None and festival.coordinates is not None:
        row["distance_km"] = round(distance_km(coordinates, festival.coordinates), 1)
    return row


async def run_discovery(args: argparse.Namespace) -> dict:
    """Load the catalog, apply the query and grow the requested pages."""
    from festival_finder.core.config import settings
    from festival_finder.modules.discovery.application.dependencies import (
        build_discovery_session,
    )
    from festival_finder.modules.geolocation.domain.entities import Coordinates

    overrides = {}
    if args.snapshot:
        overrides["CATALOG_SNAPSHOT_PATH"] = Path(args.snapshot)
        overrides["CATALOG_SOURCE"] = "file"
    if args.lat is not None and args.lon is not None:
        overrides["GEO_IP_LOOKUP_ENABLED"] = False
    config = settings.model_copy(update=overrides)

    async with build_discovery_session(config) as session:
        session.apply_query_string(
            {
                key: value
                for key, value in (
                    ("search", args.search),
                    ("genre", args.genre),
                    ("city", args.city),
                    ("sort", args.sort),
                )
                if value
            }
        )

        coordinates = None
        if args.lat is not None and args.lon is not None:
            coordinates = Coordinates(latitude=args.lat, longitude=args.lon)
            session.location.set(coordinates)
        elif args.sort == "distance":
            await session.request_location()
            coordinates = session.location.value

        for _ in range(max(args.pages, 1) - 1):
            await session.grow_once()

        window = session.window.value
        return {
            "query": session.query_string(),
            "error": session.catalog_error.value,
            "location_error": session.location_error.value,
            "total": len(session.view.value),
            "shown": window.size,
            "has_more": window.has_more,
            "festivals": [festival_row(f, coordinates) for f in session.visible],
        }


def print_result(result: dict, json_output: bool = False):
    """Print the discovery result."""
    if json_output:
        print(json.dumps(result, indent=2, ensure_ascii=False))
        return

    print(f"\n{'=' * 60}")
    print(f"Festivals {result['shown']}/{result['total']} {result['query'] or ''}")
    print(f"{'=' * 60}")

    if result["error"]:
        print(f"\n❌ {result['error']}")
    if result["location_error"]:
        print(f"\n⚠️  {result['location_error']}")

    for row in result["festivals"]:
        distance = f" ({row['distance_km']} km)" if "distance_km" in row else ""
        print(
            f"- {row['name']} | {row['city']}{distance} | {row['start']} | "
            f"{row['full_pass']:.0f} {row['currency']} | ★ {row['popularity']:.0f}"
        )

    if result["has_more"]:
        print("\n… more results available (--pages)")
    print(f"\n{'=' * 60}\n")


def main():
    """Entry point."""
    parser = argparse.ArgumentParser(description="Festival discovery pipeline")
    parser.add_argument("--search", "-s", type=str, help="Free-text search")
    parser.add_argument("--genre", "-g", type=str, help="Genre filter")
    parser.add_argument("--city", "-c", type=str, help="City filter")
    parser.add_argument(
        "--sort",
        type=str,
        choices=["popularity", "date", "price", "city", "distance"],
        help="Sort order",
    )
    parser.add_argument("--lat", type=float, help="Reference latitude")
    parser.add_argument("--lon", type=float, help="Reference longitude")
    parser.add_argument("--pages", type=int, default=1, help="Pages to show")
    parser.add_argument("--snapshot", type=str, help="Catalog snapshot path")
    parser.add_argument("--json", action="store_true", help="Print JSON")

    args = parser.parse_args()

    from festival_finder.core.infrastructure.logging import setup_logging

    setup_logging()
    result = asyncio.run(run_discovery(args))
    print_result(result, args.json)

    sys.exit(1 if result["error"] else 0)


if __name__ == "__main__":
    main()
