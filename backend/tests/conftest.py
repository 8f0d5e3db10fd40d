import asyncio
import logging
import os
from pathlib import Path

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient

# Set test environment variables
os.environ.update(
    {
        "XIHI_SECRET": "test_secret",
        "XIHI_WWW_PATH": "/hooks/github",
        "XIHI_APP_ID": "2080",
        "XIHI_INSTALLATION_ID": "20524",
    }
)

# Import app modules after setting environment variables
from xihi.core.config import Settings, get_settings
from xihi.dispatcher import EventDispatcher
from xihi.main import create_app
from xihi.services.signature import sign

logger = logging.getLogger(__name__)

WEBHOOK_PATH = "/hooks/github"
SECRET = b"test_secret"
GITHUB_API = "https://api.github.com"


class Recorder:
    """Subscriber that remembers every payload it is handed."""

    def __init__(self):
        self.calls = []

    async def __call__(self, payload):
        self.calls.append(payload)


def signed_headers(body: bytes, event: str = "push", secret: bytes = SECRET) -> dict:
    return {
        "Content-Type": "application/json",
        "X-Hub-Signature": sign(secret, body),
        "X-GitHub-Event": event,
    }


async def call_asgi(app, method: str, path: str, headers: dict, chunks: list[bytes]):
    """
    Drive the ASGI app directly, feeding the body one chunk per receive().

    Returns (status, body, chunks consumed by the time the response started).
    """
    consumed = 0
    consumed_at_start = None
    response_complete = asyncio.Event()
    messages = []

    async def receive():
        nonlocal consumed
        if consumed < len(chunks):
            chunk = chunks[consumed]
            consumed += 1
            return {
                "type": "http.request",
                "body": chunk,
                "more_body": consumed < len(chunks),
            }
        await response_complete.wait()
        return {"type": "http.disconnect"}

    async def send(message):
        nonlocal consumed_at_start
        if message["type"] == "http.response.start":
            consumed_at_start = consumed
        messages.append(message)
        if message["type"] == "http.response.body" and not message.get("more_body"):
            response_complete.set()

    scope = {
        "type": "http",
        # 2.4 lets Starlette skip polling receive() for disconnects
        "asgi": {"version": "3.0", "spec_version": "2.4"},
        "http_version": "1.1",
        "method": method,
        "scheme": "http",
        "path": path,
        "raw_path": path.encode(),
        "root_path": "",
        "query_string": b"",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": ("testclient", 50000),
        "server": ("testserver", 80),
    }
    await app(scope, receive, send)

    start = next(m for m in messages if m["type"] == "http.response.start")
    body = b"".join(m.get("body", b"") for m in messages if m["type"] == "http.response.body")
    return start["status"], body, consumed_at_start


@pytest.fixture
def settings():
    return Settings(secret="test_secret", www_path=WEBHOOK_PATH)


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def dispatcher(recorder):
    return EventDispatcher({"push": [recorder]})


@pytest.fixture
def app(settings, dispatcher):
    return create_app(settings, dispatcher)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        logger.info("Test client created")
        yield test_client
    logger.info("Test client closed")


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(scope="session")
def private_key_pem() -> bytes:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


@pytest.fixture
def keyfile(tmp_path: Path, private_key_pem: bytes) -> Path:
    path = tmp_path / "xihi.pem"
    path.write_bytes(private_key_pem)
    return path


@pytest.fixture
def github_settings(keyfile: Path) -> Settings:
    return Settings(secret="test_secret", www_path=WEBHOOK_PATH, keyfile=keyfile)
