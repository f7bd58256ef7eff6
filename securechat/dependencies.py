"""Dependency Injection Module.

Owns the single process-wide key store handle. It is opened on first use and
only torn down explicitly through reset_dependencies().
"""
import logging
import threading
from typing import Optional

from securechat.core.config import settings
from securechat.domain.e2ee.cipher import MessageCipher
from securechat.domain.e2ee.key_manager import KeyManager
from securechat.domain.e2ee.models import RsaOaepParams
from securechat.domain.e2ee.ports import CryptoProvider, KeyValueStore
from securechat.domain.e2ee.service import SecureMessagingService

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_key_store: Optional[KeyValueStore] = None
_crypto_provider: Optional[CryptoProvider] = None
_key_manager: Optional[KeyManager] = None


def _build_key_store() -> KeyValueStore:
    backend = settings.KEY_STORE_BACKEND
    namespace = settings.KEY_STORE_NAMESPACE

    if backend == "memory":
        from securechat.adapters.memory_store.stores import MemoryKeyValueStore
        store: KeyValueStore = MemoryKeyValueStore(namespace)
    elif backend == "json":
        from securechat.adapters.json_store.stores import JsonFileKeyValueStore
        store = JsonFileKeyValueStore(settings.KEY_STORE_PATH, namespace)
    elif backend == "postgres":
        from securechat.adapters.postgres.session import get_session_factory
        from securechat.adapters.postgres.key_store import PostgresKeyValueStore
        store = PostgresKeyValueStore(get_session_factory(settings.DATABASE_URL), namespace)
    elif backend == "redis":
        from securechat.adapters.redis.stores import RedisKeyValueStore
        store = RedisKeyValueStore(namespace)
    else:
        raise RuntimeError(f"Unknown KEY_STORE_BACKEND: {backend}")

    logger.info(f"Opened key store backend={backend} namespace={namespace}")
    return store


def get_key_store() -> KeyValueStore:
    global _key_store
    with _lock:
        if _key_store is None:
            _key_store = _build_key_store()
        return _key_store


def get_crypto_provider() -> CryptoProvider:
    global _crypto_provider
    with _lock:
        if _crypto_provider is None:
            from securechat.adapters.crypto.provider import CryptographyProvider
            _crypto_provider = CryptographyProvider()
        return _crypto_provider


def get_key_manager() -> KeyManager:
    global _key_manager
    store = get_key_store()
    crypto = get_crypto_provider()
    with _lock:
        if _key_manager is None:
            _key_manager = KeyManager(
                store,
                crypto,
                params=RsaOaepParams(modulus_length=settings.RSA_MODULUS_LENGTH),
                passphrase=settings.KEY_STORE_PASSPHRASE,
            )
        return _key_manager


def get_message_cipher() -> MessageCipher:
    return MessageCipher(get_crypto_provider())


def get_messaging_service() -> SecureMessagingService:
    return SecureMessagingService(get_key_manager(), get_message_cipher())


def reset_dependencies() -> None:
    """Drop cached handles so the next call rebuilds them from settings."""
    global _key_store, _crypto_provider, _key_manager
    with _lock:
        _key_store = None
        _crypto_provider = None
        _key_manager = None
