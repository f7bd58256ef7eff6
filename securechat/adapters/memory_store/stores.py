"""Memory Store Implementations."""
import copy
from typing import Dict, Any, Optional
import logging

from securechat.domain.e2ee.ports import KeyValueStore

logger = logging.getLogger(__name__)

# Global state for memory store, one dict per namespace
_KEY_STORE_STATE: Dict[str, Dict[str, Any]] = {}


class MemoryKeyValueStore(KeyValueStore):
    def __init__(self, namespace: str = "key-store"):
        self.namespace = namespace

    async def get(self, key: str) -> Optional[Any]:
        value = _KEY_STORE_STATE.get(self.namespace, {}).get(key)
        return copy.deepcopy(value)

    async def put(self, key: str, value: Any) -> None:
        _KEY_STORE_STATE.setdefault(self.namespace, {})[key] = copy.deepcopy(value)

    async def put_many(self, entries: Dict[str, Any]) -> None:
        staged = copy.deepcopy(entries)
        _KEY_STORE_STATE.setdefault(self.namespace, {}).update(staged)

    async def clear(self) -> None:
        _KEY_STORE_STATE.pop(self.namespace, None)


def reset_memory_stores() -> None:
    """Drop every namespace (tests)."""
    _KEY_STORE_STATE.clear()
