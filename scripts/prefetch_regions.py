#!/usr/bin/env python3
"""
Warm the Earth Engine thumbnail cache for the example regions.

For each region: DEM thumbnail (composite unless --dem-only), elevation stats,
and roads thumbnail.

Examples:
  python scripts/prefetch_regions.py
  python scripts/prefetch_regions.py --regions FUJI EVEREST --size 1024x1024
  python scripts/prefetch_regions.py --regions RIDGECREST_CA --dem-only --skip-cache
"""

import argparse
import os
import sys
import time
from typing import Any, Dict, List, Optional

# Add the project root to the path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from common.config import DEFAULT_CONFIG_PATH, load_config
from common.logging_setup import setup_logging
from common.types import EXAMPLE_REGIONS, Region
from common.utils import parse_size
from elevation.errors import ElevationServiceError
from elevation.service import ElevationService


def prefetch_region(
    service: ElevationService,
    name: str,
    width: int,
    height: int,
    dem_only: bool,
    skip_cache: bool,
) -> Dict[str, Any]:
    region = Region.from_dict(EXAMPLE_REGIONS[name])
    t0 = time.perf_counter()
    try:
        dem_url = service.get_dem_thumbnail(region, width, height, skip_cache=skip_cache, dem_only=dem_only)
        stats = service.get_elevation_stats(region, skip_cache=skip_cache)
        roads_url = service.get_roads_thumbnail(region, width, height, skip_cache=skip_cache)
    except ElevationServiceError as e:
        return {"region": name, "status": "error", "error": str(e)}
    return {
        "region": name,
        "status": "success",
        "dem": dem_url,
        "roads": roads_url,
        "stats": stats.to_dict(),
        "latency_ms": int((time.perf_counter() - t0) * 1000),
    }


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    ap.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="YAML params file")
    ap.add_argument(
        "--regions",
        nargs="+",
        choices=sorted(EXAMPLE_REGIONS),
        default=sorted(EXAMPLE_REGIONS),
        help="Example regions to fetch (default: all)",
    )
    ap.add_argument("--size", default="512x512", help="Thumbnail size WxH")
    ap.add_argument("--dem-only", action="store_true", help="Skip the DEM+roads composite")
    ap.add_argument("--skip-cache", action="store_true", help="Re-render even when cached (results not persisted)")
    args = ap.parse_args(argv)

    cfg = load_config(args.config)
    setup_logging(cfg["logging"].get("level"), "text")
    width, height = parse_size(args.size)

    service = ElevationService.from_config(cfg)
    try:
        service.initialize()
    except ElevationServiceError as e:
        print(f" Error initializing Earth Engine: {e}")
        return 1

    results = []
    for i, name in enumerate(args.regions):
        print(f"  [{i+1}/{len(args.regions)}] {EXAMPLE_REGIONS[name]['name']}...", end=" ")
        result = prefetch_region(service, name, width, height, args.dem_only, args.skip_cache)
        if result["status"] == "success":
            s = result["stats"]
            print(f"ok ({result['latency_ms']}ms)")
            print(f"       DEM:   {result['dem']}")
            print(f"       Roads: {result['roads']}")
            print(f"       Elevation min/max/mean: {s['min']} / {s['max']} / {s['mean']}")
        else:
            print(f"failed: {result['error']}")
        results.append(result)

    failed = sum(1 for r in results if r["status"] != "success")
    print(f"\n  Summary: {len(results) - failed} ok, {failed} failed, {len(service.store)} cache entries")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
