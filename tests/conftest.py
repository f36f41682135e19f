"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Add tests to path for fusion_mock imports
tests_path = Path(__file__).parent
sys.path.insert(0, str(tests_path))

from fusion_mock import MockFusionClient  # noqa: E402


class SleepRecorder:
    """Records requested sleeps (in seconds) instead of sleeping."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)

    @property
    def milliseconds(self) -> list[int]:
        return [round(s * 1000) for s in self.calls]


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def client() -> MockFusionClient:
    return MockFusionClient()


@pytest.fixture(scope="session")
def rsa_private_key_pem() -> bytes:
    from cryptography.hazmat.primitives import serialization
    from cryptography.hazmat.primitives.asymmetric import rsa

    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


@pytest.fixture
def private_key_file(tmp_path: Path, rsa_private_key_pem: bytes) -> Path:
    path = tmp_path / "pure1.pem"
    path.write_bytes(rsa_private_key_pem)
    return path
