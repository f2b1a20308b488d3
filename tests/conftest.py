import base64
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Mapping, Optional, Tuple

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID

from jwt_bearer_client.cache import InMemoryCache
from jwt_bearer_client.config import CacheSettings, ClientSettings, KeyVaultSettings
from jwt_bearer_client.errors import RemoteError
from jwt_bearer_client.keyvault import KeyVault
from jwt_bearer_client.memory import MemoryStore
from jwt_bearer_client.registry import NamedRegistry
from jwt_bearer_client.transport import HttpResponse

CERTIFICATE_NAME = "signing-cert"


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeBackend:
    def __init__(self, secrets: Optional[Dict[str, str]] = None) -> None:
        self.secrets: Dict[str, str] = dict(secrets or {})
        self.get_calls: List[str] = []
        self.set_calls: List[Tuple[str, str]] = []

    def get_secret(self, name: str) -> str:
        self.get_calls.append(name)
        if name not in self.secrets:
            raise RemoteError(f"Secret {name} not found", status_code=404)
        return self.secrets[name]

    async def get_secret_async(self, name: str) -> str:
        return self.get_secret(name)

    def set_secret(self, name: str, value: str) -> None:
        self.set_calls.append((name, value))
        self.secrets[name] = value

    async def set_secret_async(self, name: str, value: str) -> None:
        self.set_secret(name, value)

    def list_secret_names(self) -> List[str]:
        return sorted(self.secrets)

    async def list_secret_names_async(self) -> List[str]:
        return self.list_secret_names()


class FakeTransport:
    def __init__(self, status_code: int = 200, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        self.requests: List[Tuple[str, Dict[str, str]]] = []

    def post_form(self, url: str, fields: Mapping[str, str]) -> HttpResponse:
        self.requests.append((url, dict(fields)))
        return HttpResponse(self.status_code, self.body)


def make_self_signed_certificate(private_key: rsa.RSAPrivateKey, public_key=None) -> x509.Certificate:
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "jwt-bearer-client-test")])
    now = datetime.now(timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(public_key or private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=30))
        .sign(private_key, hashes.SHA256())
    )


def make_certificate_payload(private_key: rsa.RSAPrivateKey) -> str:
    certificate = make_self_signed_certificate(private_key)
    blob = pkcs12.serialize_key_and_certificates(
        b"signing", private_key, certificate, None, serialization.NoEncryption()
    )
    return base64.b64encode(blob).decode("ascii")


@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def other_rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def certificate_payload(rsa_key: rsa.RSAPrivateKey) -> str:
    return make_certificate_payload(rsa_key)


@pytest.fixture
def backend(certificate_payload: str) -> FakeBackend:
    return FakeBackend({"db-password": "p@ss", CERTIFICATE_NAME: certificate_payload})


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> MemoryStore:
    return MemoryStore(clock=clock)


@pytest.fixture
def caches(store: MemoryStore) -> NamedRegistry:
    return NamedRegistry([InMemoryCache(CacheSettings(name="memory"), store)], kind="cache")


@pytest.fixture
def cached_vault(backend: FakeBackend, caches: NamedRegistry) -> KeyVault:
    settings = KeyVaultSettings(
        name="primary",
        vault_url="https://primary.vault.azure.net",
        use_cache=True,
        cache_settings_name="memory",
    )
    return KeyVault(settings, backend, caches)


@pytest.fixture
def client_settings() -> ClientSettings:
    return ClientSettings(
        authorization_server="https://login.example.test/",
        client_id="service-a",
        key_vault_certificate_name=CERTIFICATE_NAME,
        key_vault_settings_name="primary",
        scope="orders.read",
        audience="https://login.example.test",
    )


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"
