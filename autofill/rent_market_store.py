import asyncio
import json
import logging
import os
import time
from pathlib import Path
from typing import Callable, Dict, Optional

from pydantic import ValidationError

from config import settings
from models import RentMarketEntry

logger = logging.getLogger(__name__)

STORE_VERSION = 1
DAY = 86400.0


class RentMarketStore:
    """
    Durable key -> RentMarketEntry map backed by one JSON document.

    The file is read once on first use. Writes run in a worker thread, one at a
    time under an asyncio lock, and land atomically (temp file + rename) with
    the newest entries first.
    """

    def __init__(
        self,
        path: Optional[str] = None,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.path = Path(path or settings.RENT_MARKET_STORE_PATH)
        self.ttl_seconds = settings.RENT_MARKET_TTL_DAYS * DAY if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._entries: Dict[str, RentMarketEntry] = {}
        self._loaded = False
        self._dirty = False
        self._write_lock = asyncio.Lock()

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        self._loaded = True
        if not self.path.exists():
            return
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read rent market store {self.path}: {e}")
            return

        raw_entries = data.get("entries", []) if isinstance(data, dict) else data
        if not isinstance(raw_entries, list):
            logger.warning(f"Unexpected rent market store layout in {self.path}")
            return
        for raw in raw_entries:
            try:
                entry = RentMarketEntry.model_validate(raw)
            except ValidationError:
                continue
            current = self._entries.get(entry.key)
            if current is None or entry.fetched_at > current.fetched_at:
                self._entries[entry.key] = entry
        logger.info(f"Loaded {len(self._entries)} rent market entries from {self.path}")

    def is_fresh(self, entry: RentMarketEntry) -> bool:
        return self._clock() - entry.fetched_at < self.ttl_seconds

    def get(self, key: str) -> Optional[RentMarketEntry]:
        self._ensure_loaded()
        entry = self._entries.get(key)
        if entry and self.is_fresh(entry):
            return entry
        return None

    async def set(self, entry: RentMarketEntry) -> None:
        self._ensure_loaded()
        self._entries[entry.key] = entry
        self._dirty = True
        await self._save()

    async def flush(self) -> None:
        await self._save()

    def __len__(self) -> int:
        self._ensure_loaded()
        return len(self._entries)

    async def _save(self) -> None:
        # Snapshot on the loop, write in a worker thread; the lock keeps writes ordered
        async with self._write_lock:
            if not self._dirty:
                return
            entries = sorted(self._entries.values(), key=lambda e: e.fetched_at, reverse=True)
            document = {"version": STORE_VERSION, "entries": [e.model_dump() for e in entries]}
            self._dirty = False
            if not await asyncio.to_thread(self._write, document):
                self._dirty = True

    def _write(self, document: dict) -> bool:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as handle:
                json.dump(document, handle, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
            return True
        except OSError as e:
            logger.warning(f"Could not persist rent market store {self.path}: {e}")
            return False
