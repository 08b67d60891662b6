"""Process-wide cache for the read-only reference datasets.

The four datasets (device catalog, symptom taxonomy, rewards tiers, pricing plans) are
JSON documents shipped with the service. Each one is parsed on first use and then
served from memory for the lifetime of the process. Failed loads are never cached so
the next request retries them.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger("fixology.reference_data")

DATASET_FILES: Dict[str, str] = {
    "devices": "devices.json",
    "symptoms": "symptoms.json",
    "rewards": "rewards.json",
    "pricing": "pricing.json",
}

Dataset = Dict[str, Any]


@dataclass(frozen=True)
class ReferenceData:
    """Datasets available to one request; an attribute is None when its load failed."""
    devices: Optional[Dataset] = None
    symptoms: Optional[Dataset] = None
    rewards: Optional[Dataset] = None
    pricing: Optional[Dataset] = None

    def present(self) -> List[str]:
        """Names of the datasets that loaded, in declaration order."""
        return [name for name in DATASET_FILES if getattr(self, name) is not None]


def file_reader(data_dir: Path) -> Callable[[str], bytes]:
    """Purpose: Build a storage reader that maps dataset names to files in data_dir.
    Inputs/Outputs: Input is the dataset directory; output is a name -> bytes callable.
    Side Effects / State: The returned callable reads the filesystem.
    Dependencies: Uses DATASET_FILES for file names.
    Failure Modes: The callable raises OSError for missing or unreadable files.
    If Removed: ReferenceDataCache has no default storage backend.
    Testing Notes: Point at a temp dir and verify bytes round-trip.
    """
    # Close over the directory so the cache only deals in dataset names.
    def read(name: str) -> bytes:
        return (data_dir / DATASET_FILES[name]).read_bytes()

    return read


class ReferenceDataCache:
    """Get-or-load memoization layer over the static datasets."""

    def __init__(self, reader: Callable[[str], bytes]) -> None:
        """Purpose: Configure the cache with a storage reader.
        Inputs/Outputs: Input is a callable returning raw bytes for a dataset name.
        Side Effects / State: Initializes an empty in-memory store.
        Dependencies: Usually built with file_reader(settings.data_dir).
        Failure Modes: None at init; reader errors are handled in get().
        If Removed: Every request would re-read the datasets from disk.
        Testing Notes: Inject a counting reader and assert the number of reads.
        """
        # Parsed datasets keyed by name; entries are written once and never mutated.
        self._reader = reader
        self._store: Dict[str, Dataset] = {}

    def get(self, name: str) -> Optional[Dataset]:
        """Purpose: Return a parsed dataset, loading it on first use.
        Inputs/Outputs: Input is a dataset name; output is the parsed document or None.
        Side Effects / State: Stores successful loads; failures are not remembered.
        Dependencies: Uses the injected reader and json.loads.
        Failure Modes: Unknown names raise KeyError; read/parse errors return None.
        If Removed: Context assembly has no reference data.
        Testing Notes: Call twice and verify the reader ran once; make the reader
            fail once and verify the second call retries.
        """
        # Serve from memory when the dataset has already been parsed.
        if name not in DATASET_FILES:
            raise KeyError(f"Unknown dataset: {name}")
        cached = self._store.get(name)
        if cached is not None:
            return cached
        try:
            raw = self._reader(name)
            data = json.loads(raw.decode("utf-8-sig") if isinstance(raw, bytes) else raw)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.warning("dataset=%s load failed: %s", name, exc)
            return None
        self._store[name] = data
        logger.info("dataset=%s loaded", name)
        return data

    def is_loaded(self, name: str) -> bool:
        return name in self._store

    async def load_all(self) -> ReferenceData:
        """Purpose: Load every dataset concurrently and join the results.
        Inputs/Outputs: No inputs; returns a ReferenceData bundle.
        Side Effects / State: May populate the cache for datasets not yet loaded.
        Dependencies: Runs get() in worker threads via asyncio.to_thread.
        Failure Modes: A failing dataset becomes None without affecting the others.
        If Removed: The pipeline has to load datasets one by one.
        Testing Notes: Break one dataset and verify the rest still load.
        """
        # Fan out one read per dataset and wait for all of them.
        names = list(DATASET_FILES)
        results = await asyncio.gather(*(asyncio.to_thread(self.get, name) for name in names))
        return ReferenceData(**dict(zip(names, results)))
