from __future__ import annotations

import hashlib

from common.types import Region
from common.utils import format_number

# Stats are cached under a fixed probe size so they do not depend on the
# pixel size requested for any thumbnail.
STATS_PROBE_SIZE = (800, 600)
ROADS_SUFFIX = "_roads"


def derive_key(region: Region, width: int, height: int) -> str:
    """
    SHA-256 hex digest of "west,south,east,north,width,height".

    Numerically equal inputs give the same key (35.4 == 35.40, 512 == 512.0).
    """
    fields = (region.west, region.south, region.east, region.north, width, height)
    data = ",".join(format_number(v) for v in fields)
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def roads_key(region: Region, width: int, height: int) -> str:
    return derive_key(region, width, height) + ROADS_SUFFIX


def stats_key(region: Region) -> str:
    return derive_key(region, *STATS_PROBE_SIZE)
