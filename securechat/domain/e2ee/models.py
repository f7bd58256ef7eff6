"""E2EE Domain Models."""
import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

from cryptography.hazmat.primitives.asymmetric import rsa
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from securechat.errors import DecryptionError, DecryptionFailure

ALGORITHM_RSA_OAEP_256 = "RSA-OAEP-256"
HASH_SHA_256 = "SHA-256"
MIN_MODULUS_LENGTH = 2048
DEFAULT_PUBLIC_EXPONENT = 65537

AES_KEY_LEN = 32
IV_LEN = 12
TAG_LEN = 16

ENCODING_BASE64 = "base64"
ENCODING_ARRAY = "array"


@dataclass(frozen=True)
class RsaOaepParams:
    """Asymmetric key parameters. `extractable` must be True for keys that get persisted."""
    modulus_length: int = MIN_MODULUS_LENGTH
    public_exponent: int = DEFAULT_PUBLIC_EXPONENT
    hash: str = HASH_SHA_256
    extractable: bool = True


@dataclass(frozen=True)
class PublicKey:
    key: rsa.RSAPublicKey
    params: RsaOaepParams = RsaOaepParams()
    usages: Tuple[str, ...] = ("encrypt",)


@dataclass(frozen=True)
class PrivateKey:
    key: rsa.RSAPrivateKey
    params: RsaOaepParams = RsaOaepParams()
    usages: Tuple[str, ...] = ("decrypt",)

    def __repr__(self) -> str:
        return f"PrivateKey(modulus_length={self.key.key_size}, usages={self.usages})"


@dataclass(frozen=True)
class KeyPair:
    public_key: PublicKey
    private_key: PrivateKey


def b64u_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode('ascii').rstrip('=')


def b64u_decode(s: str) -> bytes:
    """Decode base64 or base64url text, with or without padding."""
    s = s.strip().replace('-', '+').replace('_', '/')
    missing_padding = len(s) % 4
    if missing_padding:
        s += '=' * (4 - missing_padding)
    return base64.b64decode(s, validate=True)


class EncryptedEnvelope(BaseModel):
    """
    Wire representation of one encrypted message body.

    Binary fields accept raw bytes, arrays of byte values (0-255) or base64 text.
    The legacy names `key` and `data` map to `encryptedKey` and `ciphertext`.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    iv: bytes
    encrypted_key: bytes = Field(..., alias="encryptedKey")
    ciphertext: bytes

    @model_validator(mode="before")
    @classmethod
    def accept_legacy_names(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            if "encryptedKey" not in data and "encrypted_key" not in data and "key" in data:
                data["encryptedKey"] = data.pop("key")
            if "ciphertext" not in data and "data" in data:
                data["ciphertext"] = data.pop("data")
        return data

    @field_validator("iv", "encrypted_key", "ciphertext", mode="before")
    @classmethod
    def coerce_bytes(cls, v: Any) -> bytes:
        if isinstance(v, (bytes, bytearray)):
            return bytes(v)
        if isinstance(v, list):
            if not all(isinstance(b, int) and not isinstance(b, bool) and 0 <= b <= 255 for b in v):
                raise ValueError("byte arrays must contain integers in 0..255")
            return bytes(v)
        if isinstance(v, str):
            try:
                return b64u_decode(v)
            except (binascii.Error, ValueError) as e:
                raise ValueError(f"invalid base64: {e}") from e
        raise ValueError(f"unsupported binary encoding: {type(v).__name__}")

    @field_validator("iv")
    @classmethod
    def validate_iv(cls, v: bytes) -> bytes:
        if len(v) != IV_LEN:
            raise ValueError(f"iv must be {IV_LEN} bytes, got {len(v)}")
        return v

    @field_validator("encrypted_key")
    @classmethod
    def validate_encrypted_key(cls, v: bytes) -> bytes:
        if not v:
            raise ValueError("encryptedKey must not be empty")
        return v

    @field_validator("ciphertext")
    @classmethod
    def validate_ciphertext(cls, v: bytes) -> bytes:
        if len(v) < TAG_LEN:
            raise ValueError(f"ciphertext must hold at least the {TAG_LEN}-byte tag, got {len(v)}")
        return v

    @classmethod
    def parse(cls, obj: Union["EncryptedEnvelope", Dict[str, Any], str, bytes]) -> "EncryptedEnvelope":
        """Build an envelope from a dict or JSON text, raising DecryptionError(MALFORMED) on any defect."""
        if isinstance(obj, EncryptedEnvelope):
            return obj
        if isinstance(obj, (str, bytes)):
            try:
                obj = json.loads(obj)
            except (ValueError, UnicodeDecodeError) as e:
                raise DecryptionError(DecryptionFailure.MALFORMED, "envelope is not valid JSON") from e
        if not isinstance(obj, dict):
            raise DecryptionError(DecryptionFailure.MALFORMED, "envelope must be a JSON object")
        try:
            return cls.model_validate(obj)
        except ValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) or "envelope" for err in e.errors())
            raise DecryptionError(DecryptionFailure.MALFORMED, f"invalid fields: {fields}") from e

    def to_wire(self, encoding: str = ENCODING_BASE64) -> Dict[str, Union[str, List[int]]]:
        if encoding == ENCODING_ARRAY:
            return {
                "iv": list(self.iv),
                "encryptedKey": list(self.encrypted_key),
                "ciphertext": list(self.ciphertext),
            }
        if encoding == ENCODING_BASE64:
            return {
                "iv": b64u_encode(self.iv),
                "encryptedKey": b64u_encode(self.encrypted_key),
                "ciphertext": b64u_encode(self.ciphertext),
            }
        raise ValueError(f"Unsupported envelope encoding: {encoding}")

    def to_json(self, encoding: str = ENCODING_BASE64) -> str:
        return json.dumps(self.to_wire(encoding), separators=(",", ":"))

    def __repr__(self) -> str:
        return (
            f"EncryptedEnvelope(iv=<{len(self.iv)} bytes>, "
            f"encrypted_key=<{len(self.encrypted_key)} bytes>, "
            f"ciphertext=<{len(self.ciphertext)} bytes>)"
        )

    __str__ = __repr__


def modulus_bytes(key: Optional[Union[PublicKey, PrivateKey]]) -> int:
    return (key.key.key_size + 7) // 8 if key is not None else 0
