"""Envelope endpoints used by the message-delivery layer."""
import logging
from typing import Any, Dict, List, Literal, Union

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from securechat.dependencies import get_messaging_service
from securechat.domain.e2ee.service import SecureMessagingService
from securechat.errors import SecureChatError, raise_for_error

router = APIRouter(prefix="/v1/envelopes", tags=["envelopes"])
logger = logging.getLogger(__name__)


class SealRequest(BaseModel):
    recipient_public_key: Union[Dict[str, Any], str]
    plaintext: str
    encoding: Literal["base64", "array"] = "base64"


class OpenRequest(BaseModel):
    envelope: Dict[str, Any]


class OpenResponse(BaseModel):
    plaintext: str


@router.post("")
async def seal(
    body: SealRequest,
    service: SecureMessagingService = Depends(get_messaging_service),
) -> Dict[str, Union[str, List[int]]]:
    try:
        return await service.encrypt_for(body.recipient_public_key, body.plaintext, body.encoding)
    except SecureChatError as e:
        raise_for_error(e)


@router.post("/open", response_model=OpenResponse)
async def open_envelope(
    body: OpenRequest,
    service: SecureMessagingService = Depends(get_messaging_service),
) -> OpenResponse:
    try:
        plaintext = await service.decrypt_incoming(body.envelope)
    except SecureChatError as e:
        logger.warning(f"Envelope could not be opened: {e.code}")
        raise_for_error(e)
    return OpenResponse(plaintext=plaintext)
