"""
Unit tests for MetadataStore
"""

import json
import logging
import os
import sys
import threading
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from common.types import CacheEntry, ElevationStats
from elevation.metadata_store import METADATA_FILENAME, Computed, MetadataStore

STATS = ElevationStats(min=600.0, max=2900.0, mean=1100.5)


class TestLoad:
    def test_creates_cache_dir_and_starts_empty(self, tmp_path):
        cache_dir = tmp_path / "public" / "images" / "earthengine"
        store = MetadataStore(cache_dir)
        assert cache_dir.is_dir()
        assert len(store) == 0
        assert not store.path.exists()

    def test_malformed_json_warns_and_starts_empty(self, tmp_path, caplog):
        (tmp_path / METADATA_FILENAME).write_text("{not json")
        with caplog.at_level(logging.WARNING, logger="elevation.metadata_store"):
            store = MetadataStore(tmp_path)
        assert len(store) == 0
        assert "Failed to load cache metadata" in caplog.text

    def test_non_object_document_starts_empty(self, tmp_path):
        (tmp_path / METADATA_FILENAME).write_text("[1, 2, 3]")
        assert len(MetadataStore(tmp_path)) == 0

    def test_reads_existing_index(self, tmp_path):
        doc = {
            "k1": {
                "imageFilename": "dem_k1.png",
                "compositeImageFilename": "dem_roads_k1.png",
                "stats": {"min": 1, "max": 2, "mean": 1.5},
                "timestamp": 1700000000000,
            },
            "k1_roads": {"roadsImageFilename": "roads_k1_roads.png", "timestamp": 1700000000001},
        }
        (tmp_path / METADATA_FILENAME).write_text(json.dumps(doc))

        store = MetadataStore(tmp_path)

        entry = store.get("k1")
        assert entry.image_filename == "dem_k1.png"
        assert entry.composite_image_filename == "dem_roads_k1.png"
        assert entry.stats == ElevationStats(min=1, max=2, mean=1.5)
        assert store.get("k1_roads").roads_image_filename == "roads_k1_roads.png"
        assert store.get("k1_roads").stats is None


class TestUpdateAndSave:
    def test_update_persists_whole_map(self, tmp_path):
        store = MetadataStore(tmp_path)
        store.update("a", {"image_filename": "dem_a.png", "stats": STATS})
        store.update("b_roads", {"roads_image_filename": "roads_b_roads.png"})

        doc = json.loads(store.path.read_text())
        assert set(doc) == {"a", "b_roads"}
        assert doc["a"]["imageFilename"] == "dem_a.png"
        assert doc["a"]["stats"] == {"min": 600.0, "max": 2900.0, "mean": 1100.5}
        assert "compositeImageFilename" not in doc["a"]
        assert isinstance(doc["a"]["timestamp"], int)

    def test_update_merges_fields(self, tmp_path):
        store = MetadataStore(tmp_path)
        store.update("a", {"image_filename": "dem_a.png"})
        store.update("a", {"composite_image_filename": "dem_roads_a.png"})

        entry = MetadataStore(tmp_path).get("a")
        assert entry.image_filename == "dem_a.png"
        assert entry.composite_image_filename == "dem_roads_a.png"

    def test_update_drop_clears_field(self, tmp_path):
        store = MetadataStore(tmp_path)
        store.update("a", {"image_filename": "dem_a.png", "composite_image_filename": "dem_roads_a.png"})
        store.update("a", {"image_filename": "dem_a.png"}, drop=("composite_image_filename",))
        assert store.get("a").composite_image_filename is None
        assert "compositeImageFilename" not in json.loads(store.path.read_text())["a"]

    def test_update_rejects_unknown_field(self, tmp_path):
        with pytest.raises(AttributeError):
            MetadataStore(tmp_path).update("a", {"bogus": 1})

    def test_defaults_seed_new_entry_only(self, tmp_path):
        store = MetadataStore(tmp_path)
        store.update("new", {"stats": STATS}, defaults={"image_filename": ""})
        assert store.get("new").image_filename == ""

        store.update("old", {"image_filename": "dem_old.png"})
        store.update("old", {"stats": STATS}, defaults={"image_filename": ""})
        entry = store.get("old")
        assert entry.image_filename == "dem_old.png"
        assert entry.stats == STATS

    def test_fields_win_over_defaults(self, tmp_path):
        store = MetadataStore(tmp_path)
        store.update("a", {"image_filename": "dem_a.png"}, defaults={"image_filename": ""})
        assert store.get("a").image_filename == "dem_a.png"

    def test_get_returns_snapshot(self, tmp_path):
        store = MetadataStore(tmp_path)
        store.update("a", {"image_filename": "dem_a.png"})
        snap = store.get("a")
        snap.image_filename = "changed.png"
        assert store.get("a").image_filename == "dem_a.png"

    def test_save_failure_is_logged_not_raised(self, tmp_path, caplog):
        store = MetadataStore(tmp_path)
        with patch.object(Path, "write_text", side_effect=OSError("disk full")):
            with caplog.at_level(logging.ERROR, logger="elevation.metadata_store"):
                entry = store.update("a", {"image_filename": "dem_a.png"})
                assert store.save() is False

        assert entry.image_filename == "dem_a.png"
        assert store.get("a").image_filename == "dem_a.png"
        assert "Failed to save cache metadata" in caplog.text
        assert not store.path.exists()


class TestArtifacts:
    def test_has_artifact(self, tmp_path):
        store = MetadataStore(tmp_path)
        (tmp_path / "dem_a.png").write_bytes(b"png")
        assert store.has_artifact("dem_a.png")
        assert not store.has_artifact("dem_missing.png")
        assert not store.has_artifact("")
        assert not store.has_artifact(None)


class TestGetOrCompute:
    def test_miss_computes_and_persists(self, tmp_path):
        store = MetadataStore(tmp_path)
        compute = Mock(return_value=Computed("value", {"image_filename": "dem_a.png"}))

        out = store.get_or_compute("a", lookup=lambda e: e.image_filename, compute=compute)

        assert out == "value"
        compute.assert_called_once()
        assert store.get("a").image_filename == "dem_a.png"

    def test_hit_skips_compute(self, tmp_path):
        store = MetadataStore(tmp_path)
        store.update("a", {"image_filename": "dem_a.png"})
        compute = Mock()

        out = store.get_or_compute("a", lookup=lambda e: e.image_filename, compute=compute)

        assert out == "dem_a.png"
        compute.assert_not_called()

    def test_lookup_none_is_a_miss(self, tmp_path):
        store = MetadataStore(tmp_path)
        store.update("a", {"image_filename": "dem_a.png"})
        compute = Mock(return_value=Computed(STATS, {"stats": STATS}))

        out = store.get_or_compute("a", lookup=lambda e: e.stats, compute=compute)

        assert out == STATS
        entry = store.get("a")
        assert entry.image_filename == "dem_a.png"
        assert entry.stats == STATS

    def test_skip_cache_neither_reads_nor_writes(self, tmp_path):
        store = MetadataStore(tmp_path)
        store.update("a", {"image_filename": "dem_a.png"})
        before = store.path.read_text()
        lookup = Mock(return_value="cached")
        compute = Mock(return_value=Computed("fresh", {"image_filename": "dem_other.png"}))

        out = store.get_or_compute("a", lookup=lookup, compute=compute, skip_cache=True)

        assert out == "fresh"
        lookup.assert_not_called()
        assert store.get("a").image_filename == "dem_a.png"
        assert store.path.read_text() == before

    def test_compute_error_propagates_without_writing(self, tmp_path):
        store = MetadataStore(tmp_path)
        compute = Mock(side_effect=RuntimeError("provider down"))
        with pytest.raises(RuntimeError, match="provider down"):
            store.get_or_compute("a", lookup=lambda e: None, compute=compute)
        assert "a" not in store

    def test_concurrent_misses_on_one_key_keep_both_fields(self, tmp_path):
        store = MetadataStore(tmp_path)
        both_missed = threading.Barrier(2, timeout=5)
        errors = []

        def compute_with(fields):
            def compute():
                both_missed.wait()
                return Computed("value", fields)
            return compute

        def run(fields):
            try:
                store.get_or_compute("a", lookup=lambda e: None, compute=compute_with(fields))
            except Exception as e:  # surfaced to the main thread below
                errors.append(e)

        threads = [
            threading.Thread(target=run, args=({"image_filename": "dem_a.png"},)),
            threading.Thread(target=run, args=({"stats": STATS},)),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert errors == []
        entry = MetadataStore(tmp_path).get("a")
        assert entry.image_filename == "dem_a.png"
        assert entry.stats == STATS

    def test_computed_defaults_apply_on_first_write(self, tmp_path):
        store = MetadataStore(tmp_path)
        compute = Mock(return_value=Computed(STATS, {"stats": STATS}, defaults={"image_filename": ""}))
        store.get_or_compute("a", lookup=lambda e: e.stats, compute=compute)
        assert json.loads(store.path.read_text())["a"]["imageFilename"] == ""


class TestCacheEntry:
    def test_to_dict_omits_unset_fields(self):
        entry = CacheEntry(roads_image_filename="roads_k_roads.png", timestamp=5)
        assert entry.to_dict() == {"roadsImageFilename": "roads_k_roads.png", "timestamp": 5}

    def test_empty_filename_placeholder_is_kept(self):
        entry = CacheEntry(image_filename="", stats=STATS, timestamp=5)
        assert entry.to_dict()["imageFilename"] == ""
