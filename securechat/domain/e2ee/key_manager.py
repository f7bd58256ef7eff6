"""Key Manager: lifecycle of the local identity's RSA-OAEP key pair."""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from .cipher import MessageCipher
from .models import KeyPair, PrivateKey, PublicKey, RsaOaepParams
from .ports import CryptoProvider, KeyValueStore
from securechat.errors import EncodingError, KeyGenerationError, StorageError

logger = logging.getLogger(__name__)

PUBLIC_KEY_ID = "publicKey"
PRIVATE_KEY_ID = "privateKey"
PRIVATE_KEY_FORMAT = "pkcs8-pem"


class KeyManager:
    """Owns the single key pair of the local identity in the key store.

    Pairs are replaced wholesale, never mutated. Absence is reported as None.
    Storage failures propagate as StorageError without retries.
    """

    def __init__(
        self,
        store: KeyValueStore,
        crypto: CryptoProvider,
        params: Optional[RsaOaepParams] = None,
        passphrase: Optional[str] = None,
    ):
        """Initialize manager.

        Args:
            store: Durable key-value store bound to the key namespace
            crypto: Port for key generation
            params: Asymmetric parameters for new pairs (default RSA-2048, e=65537, SHA-256)
            passphrase: Optional passphrase encrypting the private key at rest
        """
        self._store = store
        self._crypto = crypto
        self._params = params or RsaOaepParams()
        self._passphrase = passphrase.encode("utf-8") if passphrase else None
        self._ensure_lock = asyncio.Lock()

    @property
    def params(self) -> RsaOaepParams:
        return self._params

    async def generate(self) -> KeyPair:
        try:
            sk = await asyncio.to_thread(self._crypto.generate_rsa_key_pair, self._params)
        except KeyGenerationError:
            raise
        except Exception as e:
            logger.error(f"Crypto provider unavailable during key generation: {e}")
            raise KeyGenerationError(f"Crypto provider unavailable: {e}") from e

        logger.info(f"Generated RSA-OAEP key pair ({self._params.modulus_length} bits)")
        return KeyPair(
            public_key=PublicKey(key=sk.public_key(), params=self._params),
            private_key=PrivateKey(key=sk, params=self._params),
        )

    async def store(self, key_pair: KeyPair) -> None:
        """Persist both halves in one atomic write, replacing any prior pair."""
        if not key_pair.private_key.params.extractable:
            raise KeyGenerationError("Key pair was generated non-extractable and cannot be persisted")

        entries = {
            PUBLIC_KEY_ID: self._serialize_public(key_pair.public_key),
            PRIVATE_KEY_ID: self._serialize_private(key_pair.private_key),
        }
        previous = await self._store.get(PUBLIC_KEY_ID)
        await self._store.put_many(entries)

        if isinstance(previous, dict) and previous.get("jwk") != entries[PUBLIC_KEY_ID]["jwk"]:
            # No key IDs: envelopes sealed to the old public key can no longer be opened.
            logger.warning("Replaced existing key pair; envelopes encrypted to the previous public key are orphaned")
        else:
            logger.info("Stored key pair")

    async def get_public_key(self) -> Optional[PublicKey]:
        value = await self._store.get(PUBLIC_KEY_ID)
        if value is None:
            return None
        return self._deserialize_public(value)

    async def get_private_key(self) -> Optional[PrivateKey]:
        value = await self._store.get(PRIVATE_KEY_ID)
        if value is None:
            return None
        return self._deserialize_private(value)

    async def get_key_pair(self) -> Optional[KeyPair]:
        public_key = await self.get_public_key()
        private_key = await self.get_private_key()
        if public_key is None or private_key is None:
            return None
        return KeyPair(public_key=public_key, private_key=private_key)

    async def ensure_key_pair(self) -> KeyPair:
        """Return the stored pair, generating and storing one on first use."""
        async with self._ensure_lock:
            key_pair = await self.get_key_pair()
            if key_pair is not None:
                return key_pair
            key_pair = await self.generate()
            await self.store(key_pair)
            return key_pair

    async def replace_key_pair(self) -> KeyPair:
        """Generate a fresh pair and swap it in; on failure the old pair stays in place."""
        async with self._ensure_lock:
            key_pair = await self.generate()
            await self.store(key_pair)
            return key_pair

    async def clear(self) -> None:
        await self._store.clear()
        logger.info("Cleared local key pair")

    def _serialize_public(self, key: PublicKey) -> Dict[str, Any]:
        return {
            "jwk": MessageCipher.export_public_key(key),
            "created_at": datetime.now(timezone.utc).isoformat(),
        }

    def _serialize_private(self, key: PrivateKey) -> Dict[str, Any]:
        encryption: serialization.KeySerializationEncryption
        if self._passphrase:
            encryption = serialization.BestAvailableEncryption(self._passphrase)
        else:
            encryption = serialization.NoEncryption()
        pem = key.key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=encryption,
        )
        return {
            "format": PRIVATE_KEY_FORMAT,
            "encrypted": self._passphrase is not None,
            "pem": pem.decode("ascii"),
            "hash": key.params.hash,
        }

    def _deserialize_public(self, value: Any) -> PublicKey:
        if not isinstance(value, dict) or "jwk" not in value:
            raise StorageError("Stored public key record is corrupt")
        try:
            return MessageCipher.import_public_key(value["jwk"])
        except EncodingError as e:
            raise StorageError(f"Stored public key is corrupt: {e}") from e

    def _deserialize_private(self, value: Any) -> PrivateKey:
        if not isinstance(value, dict) or value.get("format") != PRIVATE_KEY_FORMAT or "pem" not in value:
            raise StorageError("Stored private key record is corrupt")
        password = self._passphrase if value.get("encrypted") else None
        if value.get("encrypted") and password is None:
            raise StorageError("Stored private key is encrypted but no passphrase is configured")
        try:
            sk = serialization.load_pem_private_key(value["pem"].encode("ascii"), password=password)
        except (ValueError, TypeError) as e:
            raise StorageError("Stored private key is corrupt or the passphrase is wrong") from e
        if not isinstance(sk, rsa.RSAPrivateKey):
            raise StorageError("Stored private key is not an RSA key")

        params = RsaOaepParams(
            modulus_length=sk.key_size,
            public_exponent=sk.public_key().public_numbers().e,
            hash=value.get("hash", self._params.hash),
        )
        return PrivateKey(key=sk, params=params)
