import logging
from typing import Protocol, runtime_checkable

from eth_account import Account
from eth_account.messages import encode_defunct

logger = logging.getLogger(__name__)


@runtime_checkable
class WalletSigner(Protocol):
    """
    A wallet able to sign text as an Ethereum personal message.

    Implementations return the 65 byte signature as hex and raise
    ``UserAborted`` when the user declines or closes the wallet prompt.
    """
    address: str

    def sign_personal_message(self, message: str) -> str:
        ...


class LocalKeySigner:
    """Signs with a private key held in process (scripts, tests)."""

    def __init__(self, private_key: str):
        if not private_key:
            raise ValueError("A private key is required for LocalKeySigner.")
        self._account = Account.from_key(private_key)
        self.address = self._account.address

    def sign_personal_message(self, message: str) -> str:
        signed = self._account.sign_message(encode_defunct(text=message))
        logger.debug(f"Signed personal message with {self.address}")
        return signed.signature.to_0x_hex()

    def __repr__(self) -> str:
        return f"LocalKeySigner(address={self.address!r})"

