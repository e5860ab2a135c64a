"""Global date-sorted index of image records from every provider instance."""

import logging
import threading
from dataclasses import replace
from typing import Iterable

from .provider import FileRecord

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = frozenset({
    ".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp", ".tiff", ".tif", ".svg",
    ".ico", ".heic", ".heif", ".raw", ".cr2", ".nef", ".arw", ".dng",
})


def is_image(name: str) -> bool:
    """Extension allow-list check. Names without a real extension are rejected."""
    dot = name.rfind(".")
    if dot <= 0:
        return False
    return name[dot:].lower() in IMAGE_EXTENSIONS


class ThumbnailIndex:
    """Records kept sorted ascending by ``date_taken``.

    ``render_pointer`` marks the paging position for :meth:`next_page` and is
    reset to the end whenever the collection changes.
    """

    def __init__(self) -> None:
        self._records: list[FileRecord] = []
        self.render_pointer = 0
        self._lock = threading.RLock()

    def __len__(self) -> int:
        return len(self._records)

    @property
    def records(self) -> tuple[FileRecord, ...]:
        with self._lock:
            return tuple(self._records)

    def add_thumbnails(self, files: Iterable[FileRecord]) -> int:
        """Merge a batch into the index. Returns the number of records added."""
        batch = sorted(
            (f for f in files if is_image(f.name)),
            key=lambda f: f.date_taken,
        )
        if not batch:
            return 0
        with self._lock:
            existing = self._records
            if not existing:
                self._records = batch
            else:
                merged: list[FileRecord] = []
                i = j = 0
                while i < len(existing) and j < len(batch):
                    # Ties keep existing records first.
                    if existing[i].date_taken <= batch[j].date_taken:
                        merged.append(existing[i])
                        i += 1
                    else:
                        merged.append(batch[j])
                        j += 1
                merged.extend(existing[i:])
                merged.extend(batch[j:])
                self._records = merged
            self.render_pointer = len(self._records)
        logger.info("Merged %d image record(s), index now holds %d", len(batch), len(self._records))
        return len(batch)

    def purge(self, provider_type: str, instance_index: int) -> int:
        """Drop every record of one instance. Other tags are left untouched."""
        with self._lock:
            kept = [
                r for r in self._records
                if r.provider_type != provider_type or r.instance_index != instance_index
            ]
            removed = len(self._records) - len(kept)
            self._records = kept
            self.render_pointer = len(kept)
        return removed

    def replace(self, provider_type: str, instance_index: int, files: Iterable[FileRecord]) -> int:
        """Swap one instance's records for a fresh listing under a single lock."""
        with self._lock:
            self.purge(provider_type, instance_index)
            return self.add_thumbnails(files)

    def remove_provider(self, provider_type: str, instance_index: int) -> int:
        """Drop an instance's records and shift higher instances of the type down by one.

        Must be called with the index the instance had before the manager
        renumbers its list.
        """
        with self._lock:
            kept = []
            removed = 0
            for r in self._records:
                if r.provider_type != provider_type:
                    kept.append(r)
                elif r.instance_index == instance_index:
                    removed += 1
                elif r.instance_index > instance_index:
                    kept.append(replace(r, instance_index=r.instance_index - 1))
                else:
                    kept.append(r)
            self._records = kept
            self.render_pointer = len(kept)
        logger.info("Removed %d record(s) for %s instance %d", removed, provider_type, instance_index)
        return removed

    def get_page(self, index: int, size: int) -> list[FileRecord]:
        """Up to ``size`` records newest-first, ``index`` counted back from the newest."""
        with self._lock:
            total = len(self._records)
            if total == 0 or index < 0 or size <= 0 or index >= total:
                return []
            start = total - 1 - index
            end = max(0, start - size + 1)
            return self._records[end:start + 1][::-1]

    def next_page(self, size: int) -> list[FileRecord]:
        """Continue newest-first paging from the render pointer."""
        with self._lock:
            page = self.get_page(len(self._records) - self.render_pointer, size)
            self.render_pointer -= len(page)
            return page

    def reset_pointer(self) -> None:
        with self._lock:
            self.render_pointer = len(self._records)

    def clear(self) -> None:
        with self._lock:
            self._records = []
            self.render_pointer = 0
