"""
Test fixtures and configuration.
"""
import pytest
from eth_account import Account

from walletauth.auth_flow import AuthFlow
from walletauth.services.identity_service import IdentityServiceClient
from walletauth.services.signer_service import LocalKeySigner

# Well-known development keys (Hardhat accounts #0 and #1)
PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
OTHER_PRIVATE_KEY = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"
OTHER_ADDRESS = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"

CHAIN_ID = "1"
ORIGIN_URL = "http://localhost:3000"


@pytest.fixture
def account():
    return Account.from_key(PRIVATE_KEY)


@pytest.fixture
def signer() -> LocalKeySigner:
    return LocalKeySigner(PRIVATE_KEY)


@pytest.fixture
def other_signer() -> LocalKeySigner:
    return LocalKeySigner(OTHER_PRIVATE_KEY)


@pytest.fixture
def identity_service():
    # Imported here so codec and recovery tests collect without the web stack
    from fake_identity_service import FakeIdentityService

    return FakeIdentityService()


@pytest.fixture
def service_client(identity_service) -> IdentityServiceClient:
    """Client wired to the in-process fake service."""
    from fastapi.testclient import TestClient
    from fake_identity_service import BASE_PATH

    return IdentityServiceClient(
        base_url=f"http://testserver{BASE_PATH}",
        api_key="anon-key",
        timeout=5,
        session=TestClient(identity_service.app),
    )


@pytest.fixture
def flow(service_client) -> AuthFlow:
    return AuthFlow(service_client)
