"""E2EE Domain Ports (Interfaces)."""
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from cryptography.hazmat.primitives.asymmetric import rsa

from .models import RsaOaepParams


class KeyValueStore(ABC):
    """Abstract Port for the durable local key store.

    One instance is bound to one namespace. Values must be JSON-serializable.
    Implementations raise StorageError for every backend failure.
    """

    namespace: str

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or None when absent."""
        ...

    @abstractmethod
    async def put(self, key: str, value: Any) -> None:
        """Create or replace a single value."""
        ...

    @abstractmethod
    async def put_many(self, entries: Dict[str, Any]) -> None:
        """Write all entries in one atomic operation: either all land or none do."""
        ...

    @abstractmethod
    async def clear(self) -> None:
        """Delete every entry in the namespace. Clearing an empty store succeeds."""
        ...

    async def ping(self) -> bool:
        """Readiness probe."""
        await self.get("__ping__")
        return True


class CryptoProvider(ABC):
    """Abstract Port for cryptographic primitives (synchronous, atomic calls)."""

    @abstractmethod
    def generate_rsa_key_pair(self, params: RsaOaepParams) -> rsa.RSAPrivateKey:
        """Generate an RSA private key for OAEP use."""
        ...

    @abstractmethod
    def rsa_oaep_encrypt(self, public_key: rsa.RSAPublicKey, data: bytes) -> bytes:
        ...

    @abstractmethod
    def rsa_oaep_decrypt(self, private_key: rsa.RSAPrivateKey, data: bytes) -> bytes:
        ...

    @abstractmethod
    def generate_aes_key(self) -> bytes:
        """Fresh 256-bit AES key."""
        ...

    @abstractmethod
    def aes_gcm_encrypt(self, key: bytes, iv: bytes, data: bytes) -> bytes:
        """Return ciphertext with the 16-byte tag appended."""
        ...

    @abstractmethod
    def aes_gcm_decrypt(self, key: bytes, iv: bytes, data: bytes) -> bytes:
        ...

    @abstractmethod
    def random_bytes(self, n: int) -> bytes:
        """Cryptographically secure random bytes."""
        ...
