"""On-disk cache for credentials, volume and audio files with an LRU size limit."""

from __future__ import annotations

import io
import itertools
import logging
import os
import re
import shutil
import threading
import time
from pathlib import Path
from typing import BinaryIO

from .authentication import Credentials
from .spotify_id import FileId

log = logging.getLogger(__name__)

_VOLUME_RE = re.compile(r"\+?[0-9]+")
_MAX_VOLUME = 0xFFFF


class SizeLimiter:
    """Tracks file sizes and access times and yields the oldest files past a limit."""

    def __init__(self, limit: int) -> None:
        self.size_limit = limit
        self.in_use = 0
        self._entries: dict[Path, tuple[float, int, int]] = {}
        self._counter = itertools.count()

    def add(self, file: str | os.PathLike, size: int, accessed: float) -> None:
        """Add a file, or update it if already present."""
        path = Path(file)
        old = self._entries.get(path)
        self.in_use += size
        if old is not None:
            self.in_use -= old[2]
        self._entries[path] = (accessed, next(self._counter), size)

    def exceeds_limit(self) -> bool:
        """Return True if the tracked size is above the limit."""
        return self.in_use > self.size_limit

    def pop(self) -> Path | None:
        """Remove and return the least recently accessed file while over the limit."""
        if not self.exceeds_limit() or not self._entries:
            return None
        oldest = min(self._entries, key=lambda p: self._entries[p][:2])
        _, _, size = self._entries.pop(oldest)
        self.in_use -= size
        return oldest

    def update(self, file: str | os.PathLike, access_time: float) -> bool:
        """Refresh the access time of a file; return True if it was tracked."""
        path = Path(file)
        entry = self._entries.get(path)
        if entry is None:
            return False
        self._entries[path] = (access_time, next(self._counter), entry[2])
        return True

    def remove(self, file: str | os.PathLike) -> bool:
        """Stop tracking a file; return True if it was tracked."""
        entry = self._entries.pop(Path(file), None)
        if entry is None:
            return False
        self.in_use -= entry[2]
        return True

    def __len__(self) -> int:
        return len(self._entries)


class _FsSizeLimiter:
    def __init__(self, path: Path, limit: int) -> None:
        self._limiter = SizeLimiter(limit)
        self._lock = threading.Lock()
        self._init_dir(path)
        self.prune()

    def _init_dir(self, path: Path) -> None:
        try:
            entries = list(os.scandir(path))
        except OSError as exc:
            log.warning("Could not read directory %s in cache dir: %s", path, exc)
            return

        for entry in entries:
            entry_path = Path(entry.path)
            try:
                if entry.is_symlink() or entry.is_dir(follow_symlinks=False):
                    self._init_dir(entry_path)
                elif entry.is_file(follow_symlinks=False):
                    try:
                        stat = entry_path.stat()
                    except OSError as exc:
                        log.warning("Could not read file %s in cache dir: %s", entry_path, exc)
                        continue
                    accessed = stat.st_atime or stat.st_mtime or time.time()
                    self._limiter.add(entry_path, stat.st_size, accessed)
                else:
                    log.warning("File %s in cache dir has unsupported type", entry_path)
            except OSError as exc:
                log.warning("Could not get type of file %s in cache dir: %s", entry_path, exc)

    def add(self, file: Path, size: int) -> None:
        with self._lock:
            self._limiter.add(file, size, time.time())

    def touch(self, file: Path) -> bool:
        with self._lock:
            return self._limiter.update(file, time.time())

    def remove(self, file: Path) -> None:
        with self._lock:
            self._limiter.remove(file)

    def _pop(self) -> Path | None:
        with self._lock:
            return self._limiter.pop()

    def prune(self) -> None:
        count = 0
        first = True
        while (file := self._pop()) is not None:
            if first:
                log.debug("Cache dir exceeds limit, removing least recently used files.")
                first = False
            try:
                file.unlink()
            except OSError as exc:
                log.warning("Could not remove file %s from cache dir: %s", file, exc)
            else:
                count += 1
        if count:
            log.info("Removed %d cache files.", count)


class RemoveFileError(OSError):
    """Raised when a cached file cannot be removed."""


class Cache:
    """A cache for volume, credentials and audio files."""

    def __init__(
        self,
        credentials_path: str | os.PathLike | None = None,
        volume_path: str | os.PathLike | None = None,
        audio_path: str | os.PathLike | None = None,
        size_limit: int | None = None,
    ) -> None:
        self._credentials_location: Path | None = None
        self._volume_location: Path | None = None
        self._audio_location: Path | None = None
        self._size_limiter: _FsSizeLimiter | None = None

        if credentials_path is not None:
            location = Path(credentials_path)
            location.mkdir(parents=True, exist_ok=True)
            self._credentials_location = location / "credentials.json"

        if volume_path is not None:
            location = Path(volume_path)
            location.mkdir(parents=True, exist_ok=True)
            self._volume_location = location / "volume"

        if audio_path is not None:
            location = Path(audio_path)
            location.mkdir(parents=True, exist_ok=True)
            if size_limit is not None:
                self._size_limiter = _FsSizeLimiter(location, size_limit)
            self._audio_location = location

    def credentials(self) -> Credentials | None:
        """Return the stored credentials, or None if there are none readable."""
        if self._credentials_location is None:
            return None
        try:
            return Credentials.from_json(self._credentials_location.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            log.warning("Error reading credentials from cache: %s", exc)
            return None

    def save_credentials(self, cred: Credentials) -> None:
        """Store credentials; failures are logged."""
        if self._credentials_location is None:
            return
        try:
            self._credentials_location.write_text(cred.to_json(), encoding="utf-8")
        except OSError as exc:
            log.warning("Cannot save credentials to cache: %s", exc)

    def volume(self) -> int | None:
        """Return the stored volume, or None if there is none readable."""
        if self._volume_location is None:
            return None
        try:
            contents = self._volume_location.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            log.warning("Error reading volume from cache: %s", exc)
            return None
        if not _VOLUME_RE.fullmatch(contents) or int(contents) > _MAX_VOLUME:
            log.warning("Error reading volume from cache: invalid value %r", contents)
            return None
        return int(contents)

    def save_volume(self, volume: int) -> None:
        """Store the volume; failures are logged."""
        if self._volume_location is None:
            return
        try:
            self._volume_location.write_text(str(volume), encoding="utf-8")
        except OSError as exc:
            log.warning("Cannot save volume to cache: %s", exc)

    def file_path(self, file: FileId) -> Path | None:
        """Return where an audio file is stored, or None without an audio location."""
        if self._audio_location is None:
            return None
        name = file.to_base16()
        return self._audio_location / name[:2] / name[2:]

    def file(self, file: FileId) -> BinaryIO | None:
        """Open a cached audio file for reading, or return None if absent."""
        path = self.file_path(file)
        if path is None:
            return None
        try:
            handle = path.open("rb")
        except FileNotFoundError:
            return None
        except OSError as exc:
            log.warning("Error reading file from cache: %s", exc)
            return None
        if self._size_limiter is not None:
            self._size_limiter.touch(path)
        return handle

    def save_file(self, file: FileId, contents: BinaryIO | bytes) -> None:
        """Store an audio file read from ``contents`` and enforce the size limit."""
        path = self.file_path(file)
        if path is None:
            return
        if isinstance(contents, (bytes, bytearray, memoryview)):
            contents = io.BytesIO(bytes(contents))
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("wb") as out:
                shutil.copyfileobj(contents, out)
                size = out.tell()
        except OSError as exc:
            log.debug("Could not save file to cache: %s", exc)
            return
        if self._size_limiter is not None:
            self._size_limiter.add(path, size)
            self._size_limiter.prune()

    def remove_file(self, file: FileId) -> None:
        """Delete a cached audio file; raise RemoveFileError on failure."""
        path = self.file_path(file)
        if path is None:
            raise RemoveFileError("cache has no audio location")
        try:
            path.unlink()
        except OSError as exc:
            log.warning("Unable to remove file from cache: %s", exc)
            raise RemoveFileError(str(exc)) from exc
        if self._size_limiter is not None:
            self._size_limiter.remove(path)