"""
Ethereum "personal message" encoding (EIP-191 version 0x45).

The signed bytes are ``"\\x19Ethereum Signed Message:\\n" + len + payload`` where
``len`` is the decimal UTF-8 byte length of the payload. The digest signed by
wallets is keccak-256 over those bytes; any other hash breaks interoperability
with every signer and verifier, so the primitive is pinned here.
"""
import logging

from eth_utils import keccak
from hexbytes import HexBytes

from ..errors import MessageEncodingError

logger = logging.getLogger(__name__)

PERSONAL_MESSAGE_HEADER = b"\x19Ethereum Signed Message:\n"
DIGEST_ALGORITHM = "keccak-256"
DIGEST_SIZE = 32


def _payload(message: str) -> bytes:
    if not isinstance(message, str):
        raise MessageEncodingError(f"Expected a text message, got {type(message).__name__}")
    try:
        return message.encode("utf-8")
    except UnicodeEncodeError as e:
        raise MessageEncodingError(f"Message is not encodable as UTF-8: {e}") from e


def encode(message: str) -> bytes:
    """Returns the personal-message bytes for ``message``."""
    payload = _payload(message)
    return PERSONAL_MESSAGE_HEADER + str(len(payload)).encode("ascii") + payload


def decode(encoded: bytes) -> str:
    """
    Inverse of :func:`encode`.

    The declared length is the longest run of ASCII digits after the header
    that leaves exactly that many payload bytes, since the payload itself may
    start with digits.
    """
    encoded = bytes(encoded)
    if not encoded.startswith(PERSONAL_MESSAGE_HEADER):
        raise MessageEncodingError("Missing personal message header")
    rest = encoded[len(PERSONAL_MESSAGE_HEADER):]

    digits = 0
    while digits < len(rest) and rest[digits:digits + 1].isdigit():
        digits += 1
    for cut in range(digits, 0, -1):
        declared = int(rest[:cut])
        payload = rest[cut:]
        if declared == len(payload) and str(declared).encode("ascii") == rest[:cut]:
            try:
                return payload.decode("utf-8")
            except UnicodeDecodeError as e:
                raise MessageEncodingError(f"Payload is not valid UTF-8: {e}") from e
    raise MessageEncodingError("Declared length does not match the payload")


def hash_message(message: str) -> bytes:
    """keccak-256 digest of the personal-message encoding of ``message``."""
    return keccak(encode(message))


def encode_hex(message: str) -> str:
    return HexBytes(encode(message)).to_0x_hex()


def hash_hex(message: str) -> str:
    return HexBytes(hash_message(message)).to_0x_hex()
