from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from common.utils import now_ms


@dataclass(frozen=True)
class Region:
    """
    Geographic bounding box in WGS84 degrees.

    west < east and south < north are expected but not checked; a malformed
    box goes to the provider unchanged and its error is surfaced to the caller.
    """
    west: float
    south: float
    east: float
    north: float

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Region":
        return cls(
            west=float(d["west"]),
            south=float(d["south"]),
            east=float(d["east"]),
            north=float(d["north"]),
        )

    def to_dict(self) -> Dict[str, float]:
        return {"west": self.west, "south": self.south, "east": self.east, "north": self.north}

    @property
    def bounds(self) -> List[float]:
        # [lon_min, lat_min, lon_max, lat_max]
        return [self.west, self.south, self.east, self.north]

    def ring(self) -> List[List[float]]:
        """Closed polygon ring, counter-clockwise from the south-west corner."""
        return [
            [self.west, self.south],
            [self.east, self.south],
            [self.east, self.north],
            [self.west, self.north],
            [self.west, self.south],
        ]


@dataclass(frozen=True)
class ElevationStats:
    min: float
    max: float
    mean: float

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ElevationStats":
        return cls(min=d["min"], max=d["max"], mean=d["mean"])

    def to_dict(self) -> Dict[str, float]:
        return {"min": self.min, "max": self.max, "mean": self.mean}


# JSON field names of a persisted entry; kept camelCase so metadata files stay
# readable by the browser client.
_ENTRY_FIELDS = {
    "image_filename": "imageFilename",
    "composite_image_filename": "compositeImageFilename",
    "roads_image_filename": "roadsImageFilename",
    "stats": "stats",
    "timestamp": "timestamp",
}


@dataclass
class CacheEntry:
    """
    Artifacts and statistics recorded for one cache key.

    Fields are filled in incrementally as different artifact types are
    produced for the same key.
    """
    image_filename: Optional[str] = None
    composite_image_filename: Optional[str] = None
    roads_image_filename: Optional[str] = None
    stats: Optional[ElevationStats] = None
    timestamp: int = field(default_factory=now_ms)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CacheEntry":
        stats = d.get("stats")
        return cls(
            image_filename=d.get("imageFilename"),
            composite_image_filename=d.get("compositeImageFilename"),
            roads_image_filename=d.get("roadsImageFilename"),
            stats=ElevationStats.from_dict(stats) if stats else None,
            timestamp=int(d.get("timestamp", 0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for attr, key in _ENTRY_FIELDS.items():
            value = getattr(self, attr)
            if value is None:
                continue
            out[key] = value.to_dict() if isinstance(value, ElevationStats) else value
        return out

    def update(self, **fields: Any) -> None:
        for name, value in fields.items():
            if name not in _ENTRY_FIELDS:
                raise AttributeError(f"unknown cache entry field: {name}")
            setattr(self, name, value)


@dataclass(frozen=True)
class RenderRequest:
    """
    One thumbnail request as received from a client.

    skip_cache=None defers to the service-wide default.
    dem_only selects the elevation-only artifact instead of the DEM+roads composite.
    """
    region: Region
    width: int = 512
    height: int = 512
    skip_cache: Optional[bool] = None
    dem_only: bool = False

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "RenderRequest":
        """
        Parse a JSON body ({region, width?, height?, skipCache?, demOnly?}).

        Missing/null sizes fall back to 512. Anything that is not a whole,
        positive number (or a JSON boolean, for the flags) raises ValueError.
        """
        if not isinstance(d, dict):
            raise ValueError("Request body must be a JSON object")
        try:
            region = Region.from_dict(d["region"])
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid region: {e}") from e
        return cls(
            region=region,
            width=_size(d.get("width"), "width"),
            height=_size(d.get("height"), "height"),
            skip_cache=_flag(d.get("skipCache"), "skipCache"),
            dem_only=bool(_flag(d.get("demOnly"), "demOnly")),
        )


def _size(value: Any, name: str) -> int:
    if value is None:
        return 512
    if (
        isinstance(value, bool)
        or not isinstance(value, (int, float))
        or value <= 0
        or (isinstance(value, float) and not value.is_integer())
    ):
        raise ValueError(f"{name} must be a positive integer, got {value!r}")
    return int(value)


def _flag(value: Any, name: str) -> Optional[bool]:
    if value is not None and not isinstance(value, bool):
        raise ValueError(f"{name} must be true or false, got {value!r}")
    return value


EXAMPLE_REGIONS: Dict[str, Dict[str, Any]] = {
    "EVEREST": {"west": 86.8, "south": 27.8, "east": 87.2, "north": 28.2, "name": "Mount Everest"},
    "GRAND_CANYON": {"west": -112.3, "south": 36.0, "east": -111.9, "north": 36.4, "name": "Grand Canyon"},
    "FUJI": {"west": 138.65, "south": 35.25, "east": 138.85, "north": 35.45, "name": "Mount Fuji"},
    "RIDGECREST_CA": {"west": -118.4, "south": 35.4, "east": -117.4, "north": 36.4, "name": "Ridgecrest, CA"},
}
