"""
On-disk cache tier.

Each key is stored as one regular file inside a dedicated directory. The
file name is the percent-encoded key and the contents are the JSON
serialization of the value (a base64 string). There is no header,
checksum or format version.
"""

import base64
import contextlib
import binascii
import json
import os
import shutil
import time
import uuid
from pathlib import Path
from typing import List, Optional, Tuple, Union
from urllib.parse import quote, unquote

from shared.errors import (
    CacheDecodeError,
    CacheDeleteError,
    CacheEncodeError,
    CacheReadError,
    CacheWriteError,
    DirectoryCreationError,
    DirectoryRemovalError,
)
from shared.logging import get_logger

# quote() always escapes "#", so no encoded key can collide with a temp file
TEMP_PREFIX = "#tmp-"

BytesLike = Union[bytes, bytearray, memoryview]


def encode_value(value: BytesLike) -> bytes:
    """Serialize a byte value for storage."""
    if not isinstance(value, (bytes, bytearray, memoryview)):
        raise CacheEncodeError(
            f"Cache values must be bytes, got {type(value).__name__}",
            details={"type": type(value).__name__},
            tier="disk",
        )
    return json.dumps(base64.b64encode(bytes(value)).decode("ascii")).encode("utf-8")


def decode_value(raw: bytes) -> bytes:
    """Deserialize stored bytes back into the original value."""
    try:
        payload = json.loads(raw.decode("utf-8"))
        if not isinstance(payload, str):
            raise ValueError("payload is not a string")
        return base64.b64decode(payload, validate=True)
    except (UnicodeDecodeError, ValueError, binascii.Error) as exc:
        raise CacheDecodeError(str(exc), tier="disk") from exc


def key_to_filename(key: str) -> str:
    """Map a cache key to a single safe file name."""
    encoded = quote(key, safe="")
    if encoded in ("", ".", ".."):
        # a lone "%" is never produced by quote(), so it is free for the empty key
        encoded = encoded.replace(".", "%2E") or "%"
    return encoded


def filename_to_key(name: str) -> str:
    if name == "%":
        return ""
    return unquote(name)


class DiskTier:
    """Bounded directory of one file per key, evicting oldest writes first."""

    name = "disk"

    def __init__(self, directory: Union[str, Path], max_entries: int = 1000):
        self.directory = Path(directory)
        self.max_entries = max(1, int(max_entries))
        self.logger = get_logger("tiered_cache.tiers.disk")
        self.evictions = 0
        self._last_stamp_ns = 0
        self._ensure_directory()

    def _ensure_directory(self) -> None:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise DirectoryCreationError(str(self.directory), details={"error": str(exc)}) from exc

    def path_for(self, key: str) -> Path:
        """File holding the value for ``key``."""
        return self.directory / key_to_filename(key)

    def set(self, key: str, value: BytesLike) -> List[str]:
        """Write a value, then run the cleanup pass; returns evicted keys."""
        data = encode_value(value)
        path = self.path_for(key)
        tmp_path = self.directory / f"{TEMP_PREFIX}{uuid.uuid4().hex}"

        try:
            self._ensure_directory()
            tmp_path.write_bytes(data)
            os.replace(tmp_path, path)
            self._stamp(path)
        except OSError as exc:
            with contextlib.suppress(OSError):
                tmp_path.unlink()
            raise CacheWriteError(str(exc), details={"key": key, "path": str(path)}, tier=self.name) from exc

        return self.cleanup()

    def _stamp(self, path: Path) -> None:
        # write order must stay strictly increasing even within one clock tick
        stamp = max(time.time_ns(), self._last_stamp_ns + 1)
        self._last_stamp_ns = stamp
        os.utime(path, ns=(stamp, stamp))

    def get(self, key: str) -> Optional[bytes]:
        """Read a value. Missing and undecodable files are both a miss."""
        path = self.path_for(key)
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise CacheReadError(str(exc), details={"key": key, "path": str(path)}, tier=self.name) from exc

        try:
            return decode_value(raw)
        except CacheDecodeError as exc:
            self.logger.warning("Undecodable cache file treated as miss", key=key, error=exc.message)
            return None

    def remove(self, key: str) -> bool:
        """Delete a key's file; returns whether it existed."""
        path = self.path_for(key)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise CacheDeleteError(str(exc), details={"key": key, "path": str(path)}, tier=self.name) from exc

    def clear(self) -> None:
        """Remove the whole directory and recreate it empty."""
        try:
            shutil.rmtree(self.directory)
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise DirectoryRemovalError(str(self.directory), details={"error": str(exc)}) from exc
        self._ensure_directory()

    def cleanup(self) -> List[str]:
        """Remove the oldest files above capacity; returns evicted keys."""
        entries = self._entries()
        excess = len(entries) - self.max_entries
        if excess <= 0:
            return []

        entries.sort()
        evicted: List[str] = []
        for _, name in entries[:excess]:
            try:
                (self.directory / name).unlink()
            except FileNotFoundError:
                continue
            except OSError as exc:
                raise CacheDeleteError(str(exc), details={"file": name}, tier=self.name) from exc
            evicted.append(filename_to_key(name))

        self.evictions += len(evicted)
        self.logger.debug("Evicted disk entries", evicted=evicted, limit=self.max_entries)
        return evicted

    def _entries(self) -> List[Tuple[int, str]]:
        """(write timestamp ns, file name) for every stored entry."""
        entries: List[Tuple[int, str]] = []
        try:
            with os.scandir(self.directory) as it:
                for entry in it:
                    if entry.name.startswith(TEMP_PREFIX) or not entry.is_file():
                        continue
                    try:
                        entries.append((entry.stat().st_mtime_ns, entry.name))
                    except FileNotFoundError:
                        continue
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise CacheReadError(str(exc), details={"path": str(self.directory)}, tier=self.name) from exc
        return entries

    def keys(self) -> List[str]:
        """Keys from oldest to newest write."""
        return [filename_to_key(name) for _, name in sorted(self._entries())]

    def size(self) -> int:
        return len(self._entries())
