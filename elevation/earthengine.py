from __future__ import annotations

"""
Earth Engine adapter.

Everything that talks to the `ee` client lives here; the rest of the package
only sees thumbnail URLs and ElevationStats. Image graphs are built lazily on
the client and evaluated by Earth Engine when a URL or reduction is requested,
so provider errors surface from those calls.

Usage:
    provider = EarthEngineProvider()
    provider.authenticate(json.load(open("earthengine.json")))
    provider.initialize()
    url = provider.dem_thumbnail_url(region, 512, 512)
"""

import json
import logging
from typing import Any, Callable, Dict, Optional

import ee

from common.types import ElevationStats, Region
from elevation.errors import InitializationError, ProviderQueryError

log = logging.getLogger(__name__)

DEM_COLLECTION = "JAXA/ALOS/AW3D30/V4_1"
DEM_BAND = "DSM"
ROADS_COLLECTION = "TIGER/2016/Roads"

DEM_VIS = {
    "min": 0,
    "max": 5000,
    "palette": ["0000ff", "00ffff", "ffff00", "ff0000", "ffffff"],
}

# MTFCC feature class codes
PRIMARY_ROADS = "S1100"
SECONDARY_ROADS = "S1200"
LOCAL_ROADS = "S1400"

MAJOR_ROAD_STYLE = {"color": "000000", "width": 2, "lineType": "solid"}
MINOR_ROAD_STYLE = {"color": "404040", "width": 1, "lineType": "solid"}

STATS_SCALE_M = 1000
STATS_MAX_PIXELS = 1e9


class EarthEngineProvider:
    def __init__(self, project: Optional[str] = None):
        self.project = project
        self._credentials = None

    # ----------------------------
    # Startup
    # ----------------------------
    def authenticate(self, key_document: Dict[str, Any]) -> None:
        """Build service-account credentials from a parsed JSON key document."""
        try:
            email = key_document["client_email"]
            self._credentials = ee.ServiceAccountCredentials(email, key_data=json.dumps(key_document))
        except Exception as e:
            raise InitializationError(f"Failed to authenticate: {e}") from e
        if not self.project:
            self.project = key_document.get("project_id")

    def initialize(self) -> None:
        if self._credentials is None:
            raise InitializationError("authenticate() must run before initialize()")
        try:
            ee.Initialize(credentials=self._credentials, project=self.project)
        except Exception as e:
            raise InitializationError(f"Failed to initialize Earth Engine: {e}") from e
        log.info("Earth Engine initialized (project=%s)", self.project)

    # ----------------------------
    # Renders
    # ----------------------------
    def dem_thumbnail_url(self, region: Region, width: int, height: int) -> str:
        return self._thumb_url(self._elevation, region, width, height, DEM_VIS, what="DEM thumbnail")

    def composite_thumbnail_url(self, region: Region, width: int, height: int) -> str:
        """Palette-coloured elevation with the road overlay blended on top."""

        def build() -> "ee.Image":
            return self._elevation().visualize(**DEM_VIS).blend(self._roads_overlay(region))

        return self._thumb_url(build, region, width, height, what="composite thumbnail")

    def roads_thumbnail_url(self, region: Region, width: int, height: int) -> str:
        return self._thumb_url(
            lambda: self._roads_overlay(region), region, width, height, what="roads thumbnail"
        )

    def elevation_stats(self, region: Region) -> ElevationStats:
        """min / max / mean elevation over the region at a 1 km analysis scale."""
        try:
            reducer = ee.Reducer.minMax().combine(reducer2=ee.Reducer.mean(), sharedInputs=True)
            reduction = self._elevation().reduceRegion(
                reducer=reducer,
                geometry=self._geometry(region),
                scale=STATS_SCALE_M,
                maxPixels=STATS_MAX_PIXELS,
            )
            result = reduction.getInfo()
        except Exception as e:
            raise ProviderQueryError(f"Elevation stats query failed: {e}") from e
        if not isinstance(result, dict):
            raise ProviderQueryError(f"Elevation stats query returned {result!r}")
        return ElevationStats(
            min=result.get(f"{DEM_BAND}_min"),
            max=result.get(f"{DEM_BAND}_max"),
            mean=result.get(f"{DEM_BAND}_mean"),
        )

    # ----------------------------
    # Graph builders
    # ----------------------------
    @staticmethod
    def _elevation() -> "ee.Image":
        return ee.ImageCollection(DEM_COLLECTION).select(DEM_BAND).mosaic()

    @staticmethod
    def _geometry(region: Region) -> "ee.Geometry":
        return ee.Geometry.Rectangle(region.bounds)

    def _roads_overlay(self, region: Region) -> "ee.Image":
        """Major roads (primary + secondary) in black, local roads in dark grey."""
        roads = ee.FeatureCollection(ROADS_COLLECTION).filterBounds(self._geometry(region))
        primary = roads.filter(ee.Filter.eq("mtfcc", PRIMARY_ROADS))
        secondary = roads.filter(ee.Filter.eq("mtfcc", SECONDARY_ROADS))
        local = roads.filter(ee.Filter.eq("mtfcc", LOCAL_ROADS))

        major = primary.merge(secondary).style(**MAJOR_ROAD_STYLE)
        minor = local.style(**MINOR_ROAD_STYLE)
        return major.blend(minor)

    @staticmethod
    def _thumb_url(
        build: Callable[[], "ee.Image"],
        region: Region,
        width: int,
        height: int,
        extra: Optional[Dict[str, Any]] = None,
        *,
        what: str,
    ) -> str:
        params: Dict[str, Any] = {
            "region": region.ring(),
            "dimensions": f"{int(width)}x{int(height)}",
            "format": "png",
        }
        if extra:
            params.update(extra)
        try:
            return build().getThumbURL(params)
        except Exception as e:
            raise ProviderQueryError(f"Failed to render {what}: {e}") from e
