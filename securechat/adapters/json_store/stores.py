"""JSON File-based Store Implementations.

Each namespace is one JSON document. Every write replaces the whole document via
temp file + fsync + rename, so readers see either the old or the new state.
"""
import contextlib
import json
import os
import re
import tempfile
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from securechat.domain.e2ee.ports import KeyValueStore
from securechat.errors import StorageError

logger = logging.getLogger(__name__)

_NAMESPACE_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]{0,63}$")


class JsonFileKeyValueStore(KeyValueStore):
    """Persist a namespace as `<base_path>/<namespace>.json` with restrictive permissions."""

    def __init__(self, base_path: str, namespace: str = "key-store"):
        if not _NAMESPACE_PATTERN.match(namespace):
            raise ValueError(f"Invalid key store namespace: {namespace!r}")
        self.namespace = namespace
        self._base_path = Path(base_path).expanduser()
        self._opened = False

    @property
    def path(self) -> Path:
        return self._base_path / f"{self.namespace}.json"

    async def get(self, key: str) -> Optional[Any]:
        return self._read().get(key)

    async def put(self, key: str, value: Any) -> None:
        await self.put_many({key: value})

    async def put_many(self, entries: Dict[str, Any]) -> None:
        document = self._read()
        document.update(entries)
        self._write(document)

    async def clear(self) -> None:
        self._open()
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Failed to clear key store {self.path}: {e}")
            raise StorageError(f"Failed to clear key store: {e}") from e

    def _open(self) -> None:
        """Create the store directory on first use."""
        if self._opened:
            return
        try:
            self._base_path.mkdir(parents=True, exist_ok=True)
            with contextlib.suppress(OSError):
                os.chmod(self._base_path, 0o700)
        except OSError as e:
            raise StorageError(f"Cannot open key store directory {self._base_path}: {e}") from e
        self._opened = True

    def _read(self) -> Dict[str, Any]:
        self._open()
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise StorageError(f"Failed to read key store: {e}") from e
        if not text.strip():
            return {}
        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            raise StorageError(f"Key store document {self.path} is corrupt") from e
        if not isinstance(document, dict):
            raise StorageError(f"Key store document {self.path} is corrupt")
        return document

    def _write(self, document: Dict[str, Any]) -> None:
        self._open()
        try:
            payload = json.dumps(document, ensure_ascii=True, indent=2)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Value is not JSON-serializable: {e}") from e

        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(
                dir=str(self._base_path), prefix=f".{self.namespace}_", suffix=".tmp"
            )
            os.fchmod(fd, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, self.path)
            tmp_path = None
        except OSError as e:
            logger.error(f"Failed to write key store {self.path}: {e}")
            raise StorageError(f"Failed to write key store: {e}") from e
        finally:
            if tmp_path is not None:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_path)
