"""
Signer recovery for personal-message signatures.

A signature travels as 65 bytes of hex, ``r || s || v``. Wallets disagree on
how ``v`` is written: some send the raw recovery id (0/1), others the legacy
Ethereum form (27/28). The accepted encodings are listed in
``RecoveryIdEncoding``; anything else is rejected as malformed rather than
guessed at.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

from eth_keys import keys
from eth_keys.constants import SECPK1_N
from eth_keys.exceptions import BadSignature
from eth_utils import ValidationError, keccak, to_checksum_address
from hexbytes import HexBytes

from ..errors import MalformedSignature, RecoveryFailure
from . import message_codec

logger = logging.getLogger(__name__)

SIGNATURE_LENGTH = 65


class RecoveryIdEncoding(Enum):
    """Accepted encodings of ``v``, keyed by the offset added to the recovery id."""
    CANONICAL = 0
    LEGACY = 27

    def encode(self, recovery_id: int) -> int:
        return recovery_id + self.value


def normalize_v(v: int) -> Tuple[int, RecoveryIdEncoding]:
    """Maps a wire ``v`` to the recovery id (0 or 1) and the encoding it used."""
    for encoding in RecoveryIdEncoding:
        recovery_id = v - encoding.value
        if recovery_id in (0, 1):
            return recovery_id, encoding
    raise MalformedSignature(f"Unsupported recovery id v={v}")


@dataclass(frozen=True)
class ParsedSignature:
    r: int
    s: int
    v: int
    recovery_id: int
    encoding: RecoveryIdEncoding


def parse_signature(signature_hex: str | bytes) -> ParsedSignature:
    """Splits a 65 byte hex signature into ``r``, ``s`` and a normalized ``v``."""
    try:
        raw = bytes(HexBytes(signature_hex))
    except (ValueError, TypeError) as e:
        raise MalformedSignature(f"Signature is not valid hex: {e}") from e
    if len(raw) != SIGNATURE_LENGTH:
        raise MalformedSignature(f"Signature must be {SIGNATURE_LENGTH} bytes, got {len(raw)}")

    r = int.from_bytes(raw[0:32], "big")
    s = int.from_bytes(raw[32:64], "big")
    v = raw[64]
    recovery_id, encoding = normalize_v(v)
    return ParsedSignature(r=r, s=s, v=v, recovery_id=recovery_id, encoding=encoding)


def public_key_to_address(public_key: keys.PublicKey) -> str:
    """Last 20 bytes of keccak-256 over the 64 byte uncompressed key, checksummed."""
    return to_checksum_address(keccak(public_key.to_bytes())[-20:])


def recover_signer(signature_hex: str | bytes, digest: bytes) -> str:
    """
    Recovers the address that produced ``signature_hex`` over ``digest``.

    Any well-formed signature yields some address; whether it is the expected
    one is for the caller to decide.
    """
    digest = bytes(digest)
    if len(digest) != message_codec.DIGEST_SIZE:
        raise MalformedSignature(f"Digest must be {message_codec.DIGEST_SIZE} bytes, got {len(digest)}")

    parsed = parse_signature(signature_hex)
    if not (0 < parsed.r < SECPK1_N and 0 < parsed.s < SECPK1_N):
        raise RecoveryFailure("Signature r/s outside the secp256k1 scalar range")

    try:
        signature = keys.Signature(vrs=(parsed.recovery_id, parsed.r, parsed.s))
        public_key = signature.recover_public_key_from_msg_hash(digest)
    except (BadSignature, ValidationError) as e:
        raise RecoveryFailure(f"Public key recovery failed: {e}") from e

    address = public_key_to_address(public_key)
    logger.debug(f"Recovered signer {address} (v encoding: {parsed.encoding.name})")
    return address


def recover_signer_for_message(signature_hex: str | bytes, message: str) -> str:
    return recover_signer(signature_hex, message_codec.hash_message(message))


def addresses_match(a: str, b: str) -> bool:
    """Compares two 0x addresses regardless of checksum casing."""
    return bool(a) and bool(b) and a.lower() == b.lower()
