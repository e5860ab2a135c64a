"""Flat KEY=VALUE env file used as the single credential store.

The file is parsed into an ordered list of entries, mutated structurally and
written back whole. Lines that are not ``KEY=VALUE`` pairs (comments, blanks,
junk) are kept verbatim in their original position.
"""

import logging
import os
import re
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Mapping

logger = logging.getLogger(__name__)


@dataclass
class LineEdit:
    pattern: str
    new_value: str
    replace_entire_line: bool = False


@dataclass
class _Entry:
    raw: str
    key: str | None = None
    value: str | None = None


def _parse_line(line: str) -> _Entry:
    """A keyed entry only when the trimmed line reads ``KEY=...`` with no space before ``=``."""
    stripped = line.strip()
    if not stripped or stripped.startswith("#") or "=" not in stripped:
        return _Entry(raw=line)
    key, value = stripped.split("=", 1)
    if not key or key != key.rstrip():
        return _Entry(raw=line)
    return _Entry(raw=line, key=key, value=value)


def _make_entry(key: str, value: str) -> _Entry:
    return _Entry(raw=f"{key}={value}", key=key, value=value)


class EnvFileStore:
    """Read/write access to the env file, serialized behind one lock."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).expanduser().resolve()
        self._lock = threading.RLock()

    # --- Raw text ---

    def read(self) -> str:
        with self._lock:
            if not self.path.exists():
                return ""
            return self.path.read_text(encoding="utf-8")

    def write(self, content: str) -> None:
        """Atomically replace the file. Non-empty content ends in one newline."""
        content = content.rstrip("\n")
        final = content + "\n" if content else ""
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".env.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
                    f.write(final)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise

    def create(self) -> bool:
        """Create an empty env file. Returns False if it already exists."""
        with self._lock:
            if self.path.exists():
                return False
            self.write("")
            return True

    # --- Line operations ---

    def write_lines(self, lines: Iterable[str], append: bool = True) -> int:
        """Write ``KEY=VALUE`` lines, appending by default.

        A line whose key already exists replaces that entry in place so keys
        stay unique. Returns the number of lines written.
        """
        valid = [line.strip() for line in lines if line and line.strip()]
        if not valid:
            logger.warning("No valid lines provided to write")
            return 0
        with self._lock:
            entries = self._load() if append else []
            for line in valid:
                entry = _parse_line(line)
                existing = self._find(entries, entry.key) if entry.key else None
                if existing is not None:
                    entries[existing] = entry
                else:
                    entries.append(entry)
            self._save(entries)
        logger.info("Wrote %d line(s) to %s", len(valid), self.path)
        return len(valid)

    def edit_lines(self, edits: Iterable[LineEdit]) -> int:
        """Apply regex edits line by line. Returns the number of lines changed.

        Without ``replace_entire_line`` only the text after the first ``=`` is
        replaced and lines without ``=`` are left alone.
        """
        with self._lock:
            entries = self._load()
            if not entries:
                logger.warning("%s is empty or does not exist", self.path)
                return 0
            count = 0
            for edit in edits:
                if not edit.pattern or edit.new_value is None:
                    logger.warning("Invalid edit: missing pattern or new value")
                    continue
                regex = re.compile(edit.pattern)
                for pos, entry in enumerate(entries):
                    if not regex.search(entry.raw):
                        continue
                    if edit.replace_entire_line:
                        entries[pos] = _parse_line(edit.new_value)
                        count += 1
                    elif "=" in entry.raw:
                        head = entry.raw[: entry.raw.index("=") + 1]
                        entries[pos] = _parse_line(head + edit.new_value)
                        count += 1
            if count:
                self._save(entries)
                logger.info("Edited %d line(s) in %s", count, self.path)
            else:
                logger.info("No matching lines found to edit")
            return count

    def remove_lines(self, pattern: str) -> int:
        regex = re.compile(pattern)
        with self._lock:
            entries = self._load()
            kept = [e for e in entries if not regex.search(e.raw.strip())]
            removed = len(entries) - len(kept)
            if removed:
                self._save(kept)
                logger.info("Removed %d line(s) from %s", removed, self.path)
            return removed

    def get_matching_lines(self, pattern: str) -> list[str]:
        regex = re.compile(pattern)
        return [e.raw for e in self._load() if regex.search(e.raw.strip())]

    # --- Keyed access ---

    def get_value(self, key: str) -> str | None:
        entries = self._load()
        pos = self._find(entries, key)
        return entries[pos].value if pos is not None else None

    def has_key(self, key: str) -> bool:
        return self._find(self._load(), key) is not None

    def keys(self) -> list[str]:
        return [e.key for e in self._load() if e.key is not None]

    def set_values(self, values: Mapping[str, str]) -> None:
        """Update each key in place, appending the ones not yet present."""
        if not values:
            return
        with self._lock:
            entries = self._load()
            for key, value in values.items():
                pos = self._find(entries, key)
                if pos is None:
                    entries.append(_make_entry(key, value))
                else:
                    entries[pos] = _make_entry(key, value)
            self._save(entries)

    def rewrite_keys(self, rename: Callable[[str], str | None]) -> int:
        """Rename every key through ``rename`` in a single write.

        ``rename`` returns the new key, the same key to keep it, or None to
        drop the line. Returns the number of lines renamed or dropped.
        """
        with self._lock:
            entries = self._load()
            result: list[_Entry] = []
            changed = 0
            for entry in entries:
                if entry.key is None:
                    result.append(entry)
                    continue
                new_key = rename(entry.key)
                if new_key is None:
                    changed += 1
                elif new_key != entry.key:
                    result.append(_make_entry(new_key, entry.value or ""))
                    changed += 1
                else:
                    result.append(entry)
            if changed:
                self._save(result)
            return changed

    # --- Internal ---

    def _load(self) -> list[_Entry]:
        with self._lock:
            return [_parse_line(line) for line in self.read().splitlines()]

    def _save(self, entries: list[_Entry]) -> None:
        self.write("\n".join(e.raw for e in entries))

    @staticmethod
    def _find(entries: list[_Entry], key: str | None) -> int | None:
        for pos, entry in enumerate(entries):
            if entry.key == key:
                return pos
        return None
