"""Tests for SecureMessagingService."""
import pytest

from securechat.adapters.crypto.provider import CryptographyProvider
from securechat.adapters.memory_store.stores import MemoryKeyValueStore
from securechat.domain.e2ee.cipher import MessageCipher
from securechat.domain.e2ee.key_manager import KeyManager
from securechat.domain.e2ee.service import UNDECIPHERABLE_PLACEHOLDER, SecureMessagingService
from securechat.errors import EncodingError, KeyGenerationError, KeyNotFoundError, StorageError


class FixedKeyProvider(CryptographyProvider):
    def __init__(self, key_pair):
        self._sk = key_pair.private_key.key

    def generate_rsa_key_pair(self, params):
        return self._sk


@pytest.fixture
def service(key_pair):
    manager = KeyManager(MemoryKeyValueStore(), FixedKeyProvider(key_pair))
    return SecureMessagingService(manager, MessageCipher(CryptographyProvider()))


@pytest.fixture
def peer(other_key_pair):
    cipher = MessageCipher(CryptographyProvider())
    return cipher, other_key_pair


@pytest.mark.asyncio
async def test_publish_creates_key_lazily(service, key_pair):
    assert await service.key_manager.get_public_key() is None

    jwk = await service.publish_public_key()

    assert jwk["kty"] == "RSA"
    assert await service.key_manager.get_key_pair() is not None
    assert jwk == await service.publish_public_key()


@pytest.mark.asyncio
async def test_peer_to_local_message(service, peer):
    """A peer encrypts to our published key; we decrypt with the stored private key."""
    cipher, _ = peer
    jwk = await service.publish_public_key()

    envelope = await cipher.encrypt(cipher.import_public_key(jwk), "hi from a peer")
    assert await service.decrypt_incoming(envelope.to_wire("array")) == "hi from a peer"


@pytest.mark.asyncio
async def test_local_to_peer_message(service, peer):
    cipher, peer_pair = peer
    peer_jwk = cipher.export_public_key(peer_pair.public_key)

    wire = await service.encrypt_for(peer_jwk, "hi peer")
    assert await cipher.decrypt(peer_pair.private_key, wire) == "hi peer"


@pytest.mark.asyncio
async def test_encrypt_for_many_recipients(service, peer, key_pair):
    cipher, peer_pair = peer
    recipients = {
        "peer": cipher.export_public_key(peer_pair.public_key),
        "self": cipher.export_public_key(key_pair.public_key),
    }

    envelopes = await service.encrypt_for_many(recipients, "group hello")

    assert set(envelopes) == {"peer", "self"}
    assert envelopes["peer"]["iv"] != envelopes["self"]["iv"]
    assert await cipher.decrypt(peer_pair.private_key, envelopes["peer"]) == "group hello"
    assert await cipher.decrypt(key_pair.private_key, envelopes["self"]) == "group hello"


@pytest.mark.asyncio
async def test_encrypt_for_rejects_bad_jwk(service):
    with pytest.raises(EncodingError):
        await service.encrypt_for({"kty": "oct"}, "hello")


@pytest.mark.asyncio
async def test_decrypt_without_local_key(service, peer):
    cipher, peer_pair = peer
    envelope = await cipher.encrypt(peer_pair.public_key, "orphan")

    with pytest.raises(KeyNotFoundError):
        await service.decrypt_incoming(envelope)


@pytest.mark.asyncio
async def test_render_incoming_uses_placeholder(service, peer):
    cipher, peer_pair = peer
    await service.publish_public_key()
    not_for_us = await cipher.encrypt(peer_pair.public_key, "for the peer only")

    assert await service.render_incoming(not_for_us) == UNDECIPHERABLE_PLACEHOLDER
    assert await service.render_incoming({"iv": [1, 2, 3]}) == UNDECIPHERABLE_PLACEHOLDER


@pytest.mark.asyncio
async def test_reset_keys_orphans_old_envelopes(service, peer, other_key_pair):
    cipher, _ = peer
    jwk = await service.publish_public_key()
    old_envelope = await cipher.encrypt(cipher.import_public_key(jwk), "before reset")

    # Hand out a different key on regeneration
    service.key_manager._crypto = FixedKeyProvider(other_key_pair)
    new_jwk = await service.reset_keys()

    assert new_jwk != jwk
    assert await service.render_incoming(old_envelope) == UNDECIPHERABLE_PLACEHOLDER


@pytest.mark.asyncio
async def test_render_incoming_without_local_key(service, peer):
    cipher, peer_pair = peer
    envelope = await cipher.encrypt(peer_pair.public_key, "sent before logout")

    assert await service.key_manager.get_key_pair() is None
    assert await service.render_incoming(envelope) == UNDECIPHERABLE_PLACEHOLDER


class FailingProvider(CryptographyProvider):
    def generate_rsa_key_pair(self, params):
        raise KeyGenerationError("provider offline")


@pytest.mark.asyncio
async def test_reset_keys_keeps_old_pair_when_generation_fails(service):
    jwk = await service.publish_public_key()
    service.key_manager._crypto = FailingProvider()

    with pytest.raises(KeyGenerationError):
        await service.reset_keys()

    assert await service.key_manager.get_key_pair() is not None
    assert await service.publish_public_key() == jwk


@pytest.mark.asyncio
async def test_reset_keys_keeps_old_pair_when_store_fails(service, other_key_pair):
    jwk = await service.publish_public_key()
    service.key_manager._crypto = FixedKeyProvider(other_key_pair)
    store = service.key_manager._store

    async def broken_put_many(entries):
        raise StorageError("disk full")

    store.put_many = broken_put_many

    with pytest.raises(StorageError):
        await service.reset_keys()

    assert await service.publish_public_key() == jwk
