from fastapi.testclient import TestClient
import pytest

from securechat.adapters.crypto.provider import CryptographyProvider
from securechat.adapters.memory_store.stores import MemoryKeyValueStore
from securechat.dependencies import (
    get_key_manager,
    get_key_store,
    get_message_cipher,
    get_messaging_service,
)
from securechat.domain.e2ee.cipher import MessageCipher
from securechat.domain.e2ee.key_manager import KeyManager
from securechat.domain.e2ee.service import SecureMessagingService
from securechat.errors import StorageError
from securechat.main import app

client = TestClient(app)


class FixedKeyProvider(CryptographyProvider):
    def __init__(self, key_pair):
        self._sk = key_pair.private_key.key

    def generate_rsa_key_pair(self, params):
        return self._sk


@pytest.fixture(autouse=True)
def clear_overrides():
    app.dependency_overrides = {}
    yield
    app.dependency_overrides = {}


@pytest.fixture
def wired(key_pair):
    """Memory-backed dependencies with a pre-generated key for speed."""
    store = MemoryKeyValueStore("key-store")
    manager = KeyManager(store, FixedKeyProvider(key_pair))
    cipher = MessageCipher(CryptographyProvider())
    app.dependency_overrides[get_key_store] = lambda: store
    app.dependency_overrides[get_key_manager] = lambda: manager
    app.dependency_overrides[get_message_cipher] = lambda: cipher
    app.dependency_overrides[get_messaging_service] = lambda: SecureMessagingService(manager, cipher)
    return manager, cipher


def test_liveness():
    response = client.get("/health/live")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_readiness(wired):
    response = client.get("/health/ready")
    assert response.status_code == 200
    assert response.json()["checks"]["key_store"] == "ok"


def test_readiness_fails_when_store_down():
    broken = MemoryKeyValueStore()

    async def ping():
        raise StorageError("disk unavailable")

    broken.ping = ping
    app.dependency_overrides[get_key_store] = lambda: broken

    response = client.get("/health/ready")
    assert response.status_code == 503


def test_public_key_not_found(wired):
    response = client.get("/v1/keys/public")
    assert response.status_code == 404
    assert response.json()["detail"]["error"]["code"] == "KEY_NOT_FOUND"


def test_generate_then_publish(wired):
    created = client.post("/v1/keys")
    assert created.status_code == 201
    jwk = created.json()
    assert jwk["kty"] == "RSA"
    assert "d" not in jwk

    published = client.get("/v1/keys/public")
    assert published.status_code == 200
    assert published.json() == jwk


def test_generate_refuses_silent_replacement(wired):
    assert client.post("/v1/keys").status_code == 201

    conflict = client.post("/v1/keys")
    assert conflict.status_code == 409
    assert conflict.json()["detail"]["error"]["code"] == "KEY_EXISTS"

    assert client.post("/v1/keys", params={"replace": "true"}).status_code == 201


def test_delete_is_idempotent(wired):
    client.post("/v1/keys")
    assert client.delete("/v1/keys").status_code == 204
    assert client.delete("/v1/keys").status_code == 204
    assert client.get("/v1/keys/public").status_code == 404


def test_seal_and_open_round_trip(wired):
    jwk = client.post("/v1/keys").json()

    sealed = client.post("/v1/envelopes", json={
        "recipient_public_key": jwk,
        "plaintext": "Hello, this is a secret message!",
        "encoding": "array",
    })
    assert sealed.status_code == 200
    envelope = sealed.json()
    assert isinstance(envelope["iv"], list) and len(envelope["iv"]) == 12

    opened = client.post("/v1/envelopes/open", json={"envelope": envelope})
    assert opened.status_code == 200
    assert opened.json() == {"plaintext": "Hello, this is a secret message!"}


def test_seal_with_bad_key(wired):
    response = client.post("/v1/envelopes", json={
        "recipient_public_key": {"kty": "EC"},
        "plaintext": "hi",
    })
    assert response.status_code == 400
    assert response.json()["detail"]["error"]["code"] == "ENCODING_ERROR"


def test_open_tampered_envelope(wired):
    jwk = client.post("/v1/keys").json()
    envelope = client.post("/v1/envelopes", json={
        "recipient_public_key": jwk, "plaintext": "integrity", "encoding": "array",
    }).json()
    envelope["ciphertext"][0] ^= 0x01

    response = client.post("/v1/envelopes/open", json={"envelope": envelope})
    assert response.status_code == 422
    error = response.json()["detail"]["error"]
    assert error["code"] == "DECRYPTION_FAILED"
    assert error["details"]["kind"] == "AUTHENTICATION_FAILED"


def test_open_without_local_key(wired):
    response = client.post("/v1/envelopes/open", json={"envelope": {"iv": [0] * 12}})
    assert response.status_code == 404


def test_open_malformed_envelope(wired):
    client.post("/v1/keys")
    response = client.post("/v1/envelopes/open", json={"envelope": {"iv": [0] * 3}})
    assert response.status_code == 422
    assert response.json()["detail"]["error"]["details"]["kind"] == "MALFORMED"
