from __future__ import annotations

"""
Render orchestrator: cache-keyed DEM / roads thumbnails and elevation stats.

    svc = ElevationService.from_config(load_config())
    svc.initialize()
    url = svc.get_dem_thumbnail(region, 1024, 1024)            # DEM+roads composite
    url = svc.get_dem_thumbnail(region, 512, 512, dem_only=True)
    url = svc.get_roads_thumbnail(region, 512, 512)
    stats = svc.get_elevation_stats(region)

Returned URLs are relative to the static mount of the cache directory
(e.g. "/images/earthengine/dem_<key>.png").
"""

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from common.types import CacheEntry, ElevationStats, Region
from elevation.cache_key import derive_key, roads_key, stats_key
from elevation.earthengine import EarthEngineProvider
from elevation.errors import InitializationError, NotInitializedError
from elevation.fetcher import ArtifactFetcher
from elevation.metadata_store import Computed, MetadataStore

log = logging.getLogger(__name__)

DEFAULT_SIZE = 512


class ElevationService:
    def __init__(
        self,
        provider: EarthEngineProvider,
        store: MetadataStore,
        fetcher: Optional[ArtifactFetcher] = None,
        *,
        key_file: str | Path = "earthengine.json",
        url_prefix: str = "/images/earthengine",
        skip_cache: bool = False,
    ):
        """
        Params:
            provider:   render / statistics backend (Earth Engine)
            store:      metadata index owning the cache directory
            fetcher:    downloads rendered thumbnails into the cache directory
            key_file:   service-account JSON key read by initialize()
            url_prefix: public URL path under which the cache directory is served
            skip_cache: default for calls that pass skip_cache=None
        """
        self.provider = provider
        self.store = store
        self.fetcher = fetcher or ArtifactFetcher()
        self.key_file = Path(key_file)
        self.url_prefix = url_prefix.rstrip("/")
        self.skip_cache = bool(skip_cache)
        self._initialized = False
        self._init_lock = threading.Lock()

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "ElevationService":
        ee_cfg = cfg.get("earthengine", {})
        return cls(
            provider=EarthEngineProvider(project=ee_cfg.get("project")),
            store=MetadataStore(ee_cfg.get("cache_dir", "public/images/earthengine")),
            fetcher=ArtifactFetcher(timeout=ee_cfg.get("download_timeout")),
            key_file=ee_cfg.get("key_file", "earthengine.json"),
            url_prefix=ee_cfg.get("url_prefix", "/images/earthengine"),
            skip_cache=bool(ee_cfg.get("skip_cache", False)),
        )

    # -------- startup --------

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        """Load the key document, authenticate, then run the provider handshake. No-op once done."""
        with self._init_lock:
            if self._initialized:
                return
            try:
                key_document = json.loads(self.key_file.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                raise InitializationError(f"Cannot read credentials from {self.key_file}: {e}") from e
            self.provider.authenticate(key_document)
            self.provider.initialize()
            self._initialized = True
        log.info("ElevationService initialized")

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise NotInitializedError()

    # -------- public API --------

    def get_dem_thumbnail(
        self,
        region: Region,
        width: int = DEFAULT_SIZE,
        height: int = DEFAULT_SIZE,
        *,
        skip_cache: Optional[bool] = None,
        dem_only: bool = False,
    ) -> str:
        """
        URL of the elevation thumbnail for `region`.

        dem_only=False prefers the DEM+roads composite. If the composite cannot
        be produced the elevation-only image is returned instead and the entry
        records no composite.
        """
        self._require_initialized()
        skip = self._skip(skip_cache)
        key = derive_key(region, width, height)

        def lookup(entry: CacheEntry) -> Optional[str]:
            if not dem_only and self.store.has_artifact(entry.composite_image_filename):
                log.info("Cache hit for DEM composite thumbnail: %s", key)
                return self._url(entry.composite_image_filename)
            if self.store.has_artifact(entry.image_filename):
                log.info("Cache hit for DEM thumbnail: %s", key)
                return self._url(entry.image_filename)
            return None

        def compute() -> Computed[str]:
            self._log_miss("DEM thumbnail", key, skip)
            image_filename = f"dem_{key}.png"
            self._render(self.provider.dem_thumbnail_url(region, width, height), image_filename)
            stats = self.provider.elevation_stats(region)

            if dem_only:
                return Computed(
                    self._url(image_filename),
                    {"image_filename": image_filename, "stats": stats},
                )

            composite_filename = f"dem_roads_{key}.png"
            try:
                log.info("Creating composite thumbnail with DEM and roads...")
                url = self.provider.composite_thumbnail_url(region, width, height)
                self._render(url, composite_filename)
            except Exception as e:
                log.warning("Failed to create composite image with roads, using DEM only: %s", e)
                return Computed(
                    self._url(image_filename),
                    {"image_filename": image_filename, "stats": stats},
                    drop=("composite_image_filename",),
                )
            return Computed(
                self._url(composite_filename),
                {
                    "image_filename": image_filename,
                    "composite_image_filename": composite_filename,
                    "stats": stats,
                },
            )

        return self.store.get_or_compute(key, lookup=lookup, compute=compute, skip_cache=skip)

    def get_roads_thumbnail(
        self,
        region: Region,
        width: int = DEFAULT_SIZE,
        height: int = DEFAULT_SIZE,
        *,
        skip_cache: Optional[bool] = None,
    ) -> str:
        """URL of the roads-only thumbnail. Keys carry a "_roads" suffix, apart from DEM keys."""
        self._require_initialized()
        skip = self._skip(skip_cache)
        key = roads_key(region, width, height)

        def lookup(entry: CacheEntry) -> Optional[str]:
            if self.store.has_artifact(entry.roads_image_filename):
                log.info("Cache hit for roads thumbnail: %s", key)
                return self._url(entry.roads_image_filename)
            return None

        def compute() -> Computed[str]:
            self._log_miss("roads thumbnail", key, skip)
            filename = f"roads_{key}.png"
            self._render(self.provider.roads_thumbnail_url(region, width, height), filename)
            return Computed(self._url(filename), {"roads_image_filename": filename})

        return self.store.get_or_compute(key, lookup=lookup, compute=compute, skip_cache=skip)

    def get_elevation_stats(self, region: Region, *, skip_cache: Optional[bool] = None) -> ElevationStats:
        """min / max / mean elevation, cached per region under the fixed 800x600 probe key."""
        self._require_initialized()
        skip = self._skip(skip_cache)
        key = stats_key(region)

        def lookup(entry: CacheEntry) -> Optional[ElevationStats]:
            if entry.stats:
                log.info("Cache hit for elevation stats: %s", key)
            return entry.stats or None

        def compute() -> Computed[ElevationStats]:
            self._log_miss("elevation stats", key, skip)
            stats = self.provider.elevation_stats(region)
            return Computed(stats, {"stats": stats}, defaults={"image_filename": ""})

        return self.store.get_or_compute(key, lookup=lookup, compute=compute, skip_cache=skip)

    # -------- internals --------

    def _skip(self, skip_cache: Optional[bool]) -> bool:
        return self.skip_cache if skip_cache is None else bool(skip_cache)

    def _url(self, filename: str) -> str:
        return f"{self.url_prefix}/{filename}"

    def _render(self, url: str, filename: str) -> Path:
        dest = self.store.artifact_path(filename)
        log.info("Downloading %s", dest)
        return self.fetcher.download(url, dest)

    @staticmethod
    def _log_miss(what: str, key: str, skip: bool) -> None:
        if skip:
            log.info("Cache bypassed for %s: %s", what, key)
        else:
            log.info("Cache miss for %s: %s, fetching from Earth Engine...", what, key)
