"""Crypto Provider Adapter backed by the `cryptography` package."""
import os
import logging

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from securechat.domain.e2ee.models import AES_KEY_LEN, HASH_SHA_256, MIN_MODULUS_LENGTH, RsaOaepParams
from securechat.domain.e2ee.ports import CryptoProvider
from securechat.errors import KeyGenerationError

logger = logging.getLogger(__name__)


def _oaep() -> padding.OAEP:
    return padding.OAEP(
        mgf=padding.MGF1(algorithm=hashes.SHA256()),
        algorithm=hashes.SHA256(),
        label=None,
    )


class CryptographyProvider(CryptoProvider):
    """RSA-OAEP(SHA-256) + AES-256-GCM primitives.

    Randomness comes from os.urandom; callers must not substitute a weaker source.
    """

    def generate_rsa_key_pair(self, params: RsaOaepParams) -> rsa.RSAPrivateKey:
        if params.hash != HASH_SHA_256:
            raise KeyGenerationError(f"Unsupported OAEP hash: {params.hash}")
        if params.modulus_length < MIN_MODULUS_LENGTH:
            raise KeyGenerationError(
                f"Modulus length must be at least {MIN_MODULUS_LENGTH} bits, got {params.modulus_length}"
            )
        try:
            return rsa.generate_private_key(
                public_exponent=params.public_exponent,
                key_size=params.modulus_length,
            )
        except (ValueError, UnsupportedAlgorithm) as e:
            logger.error(f"RSA key generation rejected: {e}")
            raise KeyGenerationError(f"Crypto provider rejected key parameters: {e}") from e

    def rsa_oaep_encrypt(self, public_key: rsa.RSAPublicKey, data: bytes) -> bytes:
        return public_key.encrypt(data, _oaep())

    def rsa_oaep_decrypt(self, private_key: rsa.RSAPrivateKey, data: bytes) -> bytes:
        return private_key.decrypt(data, _oaep())

    def generate_aes_key(self) -> bytes:
        return AESGCM.generate_key(bit_length=AES_KEY_LEN * 8)

    def aes_gcm_encrypt(self, key: bytes, iv: bytes, data: bytes) -> bytes:
        if len(key) != AES_KEY_LEN:
            raise ValueError("AES-256-GCM requires 32-byte key")
        return AESGCM(key).encrypt(iv, data, None)

    def aes_gcm_decrypt(self, key: bytes, iv: bytes, data: bytes) -> bytes:
        if len(key) != AES_KEY_LEN:
            raise ValueError("AES-256-GCM requires 32-byte key")
        return AESGCM(key).decrypt(iv, data, None)

    def random_bytes(self, n: int) -> bytes:
        return os.urandom(n)
