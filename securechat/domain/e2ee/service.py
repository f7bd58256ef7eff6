"""Secure Messaging Service.

Facade handed to the message-delivery layer: plaintext + recipient public key in,
wire envelope out, and the reverse with the local private key.
"""
import asyncio
import logging
from typing import Any, Dict, List, Union

from .cipher import MessageCipher
from .key_manager import KeyManager
from .models import ENCODING_BASE64, EncryptedEnvelope
from securechat.errors import DecryptionError, EncodingError, KeyNotFoundError

logger = logging.getLogger(__name__)

UNDECIPHERABLE_PLACEHOLDER = "message could not be decrypted"

WireEnvelope = Dict[str, Union[str, List[int]]]


class SecureMessagingService:
    def __init__(self, key_manager: KeyManager, cipher: MessageCipher):
        self.key_manager = key_manager
        self.cipher = cipher

    async def publish_public_key(self) -> Dict[str, Any]:
        """Exported JWK of the local public key, creating the pair on first use."""
        key_pair = await self.key_manager.ensure_key_pair()
        return self.cipher.export_public_key(key_pair.public_key)

    async def encrypt_for(
        self,
        recipient_jwk: Union[Dict[str, Any], str],
        plaintext: str,
        encoding: str = ENCODING_BASE64,
    ) -> WireEnvelope:
        public_key = self.cipher.import_public_key(recipient_jwk)
        envelope = await self.cipher.encrypt(public_key, plaintext)
        return envelope.to_wire(encoding)

    async def encrypt_for_many(
        self,
        recipients: Dict[str, Union[Dict[str, Any], str]],
        plaintext: str,
        encoding: str = ENCODING_BASE64,
    ) -> Dict[str, WireEnvelope]:
        """Encrypt one message to several recipients concurrently (fresh key and IV each)."""
        names = list(recipients)
        envelopes = await asyncio.gather(
            *(self.encrypt_for(recipients[name], plaintext, encoding) for name in names)
        )
        return dict(zip(names, envelopes))

    async def decrypt_incoming(self, envelope: Union[EncryptedEnvelope, Dict[str, Any], str]) -> str:
        private_key = await self.key_manager.get_private_key()
        if private_key is None:
            raise KeyNotFoundError("No local key pair; generate one before decrypting")
        return await self.cipher.decrypt(private_key, envelope)

    async def render_incoming(self, envelope: Union[EncryptedEnvelope, Dict[str, Any], str]) -> str:
        """Plaintext for display, or a placeholder when the envelope cannot be opened."""
        try:
            return await self.decrypt_incoming(envelope)
        except (DecryptionError, EncodingError, KeyNotFoundError) as e:
            logger.warning(f"Rendering undecipherable message: {e.code} ({e.message})")
            return UNDECIPHERABLE_PLACEHOLDER

    async def reset_keys(self) -> Dict[str, Any]:
        """Replace the local pair with a fresh one."""
        key_pair = await self.key_manager.replace_key_pair()
        return self.cipher.export_public_key(key_pair.public_key)
