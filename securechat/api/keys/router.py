"""Local key endpoints. The private key is never returned."""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Response

from securechat.dependencies import get_key_manager, get_message_cipher
from securechat.domain.e2ee.cipher import MessageCipher
from securechat.domain.e2ee.key_manager import KeyManager
from securechat.errors import SecureChatError, raise_api_error, raise_for_error

router = APIRouter(prefix="/v1/keys", tags=["keys"])
logger = logging.getLogger(__name__)


@router.get("/public")
async def get_public_key(
    key_manager: KeyManager = Depends(get_key_manager),
    cipher: MessageCipher = Depends(get_message_cipher),
) -> Dict[str, Any]:
    """Exported public key (JWK) for publishing to peers."""
    try:
        public_key = await key_manager.get_public_key()
    except SecureChatError as e:
        raise_for_error(e)
    if public_key is None:
        raise_api_error("KEY_NOT_FOUND", 404, "No local key pair has been generated")
    return cipher.export_public_key(public_key)


@router.post("", status_code=201)
async def generate_key_pair(
    replace: bool = False,
    key_manager: KeyManager = Depends(get_key_manager),
    cipher: MessageCipher = Depends(get_message_cipher),
) -> Dict[str, Any]:
    """Generate and store a new key pair. Replacing orphans previously received envelopes."""
    try:
        if not replace and await key_manager.get_public_key() is not None:
            raise_api_error("KEY_EXISTS", 409, "A key pair already exists; pass replace=true to overwrite")
        key_pair = await key_manager.generate()
        await key_manager.store(key_pair)
    except SecureChatError as e:
        raise_for_error(e)
    return cipher.export_public_key(key_pair.public_key)


@router.delete("", status_code=204)
async def clear_keys(key_manager: KeyManager = Depends(get_key_manager)) -> Response:
    try:
        await key_manager.clear()
    except SecureChatError as e:
        raise_for_error(e)
    return Response(status_code=204)
