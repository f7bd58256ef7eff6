import pytest

from securechat.adapters.crypto.provider import CryptographyProvider
from securechat.adapters.memory_store.stores import reset_memory_stores
from securechat.domain.e2ee.models import KeyPair, PrivateKey, PublicKey, RsaOaepParams


def make_key_pair(params: RsaOaepParams = RsaOaepParams()) -> KeyPair:
    sk = CryptographyProvider().generate_rsa_key_pair(params)
    return KeyPair(
        public_key=PublicKey(key=sk.public_key(), params=params),
        private_key=PrivateKey(key=sk, params=params),
    )


@pytest.fixture(scope="session")
def key_pair() -> KeyPair:
    """RSA generation is slow; share one pair per session."""
    return make_key_pair()


@pytest.fixture(scope="session")
def other_key_pair() -> KeyPair:
    return make_key_pair()


@pytest.fixture
def crypto():
    return CryptographyProvider()


@pytest.fixture(autouse=True)
def clean_memory_stores():
    reset_memory_stores()
    yield
    reset_memory_stores()
