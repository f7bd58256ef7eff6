"""Message Cipher: hybrid RSA-OAEP + AES-256-GCM encryption of message bodies.

A fresh AES key and IV are generated for every message. Only the 32-byte AES key
goes through RSA, so message length is not bounded by the modulus.
"""
import asyncio
import binascii
import json
import logging
from typing import Any, Dict, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.asymmetric import rsa

from .models import (
    AES_KEY_LEN,
    ALGORITHM_RSA_OAEP_256,
    IV_LEN,
    MIN_MODULUS_LENGTH,
    EncryptedEnvelope,
    PrivateKey,
    PublicKey,
    RsaOaepParams,
    b64u_decode,
    b64u_encode,
    modulus_bytes,
)
from .ports import CryptoProvider
from securechat.errors import DecryptionError, DecryptionFailure, EncodingError

logger = logging.getLogger(__name__)

PRIVATE_JWK_MEMBERS = ("d", "p", "q", "dp", "dq", "qi", "oth")


def _int_to_b64u(value: int) -> str:
    return b64u_encode(value.to_bytes((value.bit_length() + 7) // 8 or 1, "big"))


def _b64u_to_int(value: Any, member: str) -> int:
    if not isinstance(value, str) or not value:
        raise EncodingError(f"JWK member '{member}' must be a non-empty base64url string")
    try:
        return int.from_bytes(b64u_decode(value), "big")
    except (binascii.Error, ValueError) as e:
        raise EncodingError(f"JWK member '{member}' is not valid base64url") from e


class MessageCipher:
    """Converts between plaintext message bodies and EncryptedEnvelope values."""

    def __init__(self, crypto: CryptoProvider):
        self._crypto = crypto

    async def encrypt(self, recipient_public_key: PublicKey, plaintext: str) -> EncryptedEnvelope:
        return await asyncio.to_thread(self._encrypt, recipient_public_key, plaintext)

    async def decrypt(
        self,
        local_private_key: PrivateKey,
        envelope: Union[EncryptedEnvelope, Dict[str, Any], str],
    ) -> str:
        return await asyncio.to_thread(self._decrypt, local_private_key, envelope)

    def _encrypt(self, recipient_public_key: PublicKey, plaintext: str) -> EncryptedEnvelope:
        if "encrypt" not in recipient_public_key.usages:
            raise EncodingError("Key is not usable for encryption")
        if not isinstance(plaintext, str):
            raise EncodingError(f"Plaintext must be str, got {type(plaintext).__name__}")
        try:
            data = plaintext.encode("utf-8")
        except UnicodeEncodeError as e:
            raise EncodingError("Plaintext is not representable as UTF-8") from e

        aes_key = self._crypto.generate_aes_key()
        iv = self._crypto.random_bytes(IV_LEN)
        # A short or reused IV under GCM breaks confidentiality; never continue past this.
        if len(aes_key) != AES_KEY_LEN or len(iv) != IV_LEN:
            raise RuntimeError("Crypto provider returned key material of the wrong length")

        ciphertext = self._crypto.aes_gcm_encrypt(aes_key, iv, data)
        encrypted_key = self._crypto.rsa_oaep_encrypt(recipient_public_key.key, aes_key)

        return EncryptedEnvelope(iv=iv, encrypted_key=encrypted_key, ciphertext=ciphertext)

    def _decrypt(
        self,
        local_private_key: PrivateKey,
        envelope: Union[EncryptedEnvelope, Dict[str, Any], str],
    ) -> str:
        envelope = EncryptedEnvelope.parse(envelope)

        if "decrypt" not in getattr(local_private_key, "usages", ()):
            raise DecryptionError(DecryptionFailure.KEY_MISMATCH, "key is not usable for decryption")

        # Without key IDs a wrapped key sized for another modulus is indistinguishable
        # from a truncated one; both report MALFORMED.
        expected = modulus_bytes(local_private_key)
        if len(envelope.encrypted_key) != expected:
            raise DecryptionError(
                DecryptionFailure.MALFORMED,
                f"encryptedKey is {len(envelope.encrypted_key)} bytes, expected {expected}",
            )

        try:
            aes_key = self._crypto.rsa_oaep_decrypt(local_private_key.key, envelope.encrypted_key)
        except ValueError as e:
            logger.debug(f"RSA-OAEP unwrap failed: {e}")
            raise DecryptionError(DecryptionFailure.KEY_MISMATCH) from e

        if len(aes_key) != AES_KEY_LEN:
            raise DecryptionError(DecryptionFailure.KEY_MISMATCH, "unwrapped key has the wrong length")

        try:
            data = self._crypto.aes_gcm_decrypt(aes_key, envelope.iv, envelope.ciphertext)
        except InvalidTag as e:
            raise DecryptionError(DecryptionFailure.AUTHENTICATION_FAILED) from e

        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise EncodingError("Decrypted payload is not valid UTF-8") from e

    @staticmethod
    def export_public_key(key: PublicKey) -> Dict[str, Any]:
        """Export as a JSON Web Key in the shape WebCrypto produces for RSA-OAEP/SHA-256."""
        numbers = key.key.public_numbers()
        return {
            "kty": "RSA",
            "n": _int_to_b64u(numbers.n),
            "e": _int_to_b64u(numbers.e),
            "alg": ALGORITHM_RSA_OAEP_256,
            "ext": True,
            "key_ops": ["encrypt"],
        }

    @staticmethod
    def import_public_key(serialized: Union[Dict[str, Any], str, bytes]) -> PublicKey:
        """Rebuild an encrypt-only PublicKey from an exported JWK (dict or JSON text)."""
        if isinstance(serialized, (str, bytes)):
            try:
                serialized = json.loads(serialized)
            except (ValueError, UnicodeDecodeError) as e:
                raise EncodingError("Public key is not valid JSON") from e
        if not isinstance(serialized, dict):
            raise EncodingError("Public key must be a JWK object")

        jwk = serialized
        if jwk.get("kty") != "RSA":
            raise EncodingError(f"Unsupported key type: {jwk.get('kty')!r}")
        if "alg" in jwk and jwk["alg"] != ALGORITHM_RSA_OAEP_256:
            raise EncodingError(f"Unsupported key algorithm: {jwk['alg']!r}")
        key_ops = jwk.get("key_ops")
        if key_ops is not None and (not isinstance(key_ops, list) or "encrypt" not in key_ops):
            raise EncodingError("JWK key_ops must allow 'encrypt'")
        if any(member in jwk for member in PRIVATE_JWK_MEMBERS):
            raise EncodingError("JWK carries private key material")

        n = _b64u_to_int(jwk.get("n"), "n")
        e = _b64u_to_int(jwk.get("e"), "e")
        if n.bit_length() < MIN_MODULUS_LENGTH:
            raise EncodingError(f"Modulus must be at least {MIN_MODULUS_LENGTH} bits, got {n.bit_length()}")
        try:
            public_key = rsa.RSAPublicNumbers(e, n).public_key()
        except ValueError as ex:
            raise EncodingError(f"Invalid RSA public key: {ex}") from ex

        params = RsaOaepParams(modulus_length=public_key.key_size, public_exponent=e)
        return PublicKey(key=public_key, params=params)
