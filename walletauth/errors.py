"""
Failure taxonomy for the wallet sign-in flow.

Every failure the flow can surface is a subclass of ``WalletAuthError``. Each
class carries a short ``notification`` suitable for showing to the end user
and a ``retryable`` flag; technical detail (status code, response body,
original request) stays on the exception for diagnostics.
"""
from typing import Any, Dict, Optional


class WalletAuthError(Exception):
    """Base class for all sign-in failures."""
    notification = "Sign-in failed. Please try again."
    retryable = False


class MessageEncodingError(WalletAuthError, ValueError):
    notification = "The sign-in challenge could not be encoded."


# --- Signature errors (local, non-retryable) ---
class SignatureError(WalletAuthError):
    notification = "The wallet signature could not be verified."


class MalformedSignature(SignatureError, ValueError):
    """Signature hex does not decode to r, s and an accepted v."""
    notification = "The wallet returned a malformed signature."


class RecoveryFailure(SignatureError):
    """Public key recovery failed for a well-formed signature."""
    notification = "The wallet signature is not cryptographically valid."


# --- Identity service errors (retryable by starting a new attempt) ---
class ServiceRequestError(WalletAuthError):
    retryable = True

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        request: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.request = request or {}


class NonceRequestError(ServiceRequestError):
    notification = "Could not get a sign-in challenge from the server. Please try again."


class ExchangeError(ServiceRequestError):
    notification = "The server rejected the signed challenge. Please sign in again."


class UserAborted(WalletAuthError):
    """The signer declined, was closed, or the attempt was cancelled."""
    notification = "Sign-in was cancelled in the wallet."
    retryable = True


# --- Caller ordering violations ---
class FlowOrderError(WalletAuthError):
    notification = "Sign-in steps were called out of order."


class StaleChallengeError(FlowOrderError):
    notification = "This sign-in challenge has expired. Please start again."


class FlowBusyError(FlowOrderError):
    notification = "A sign-in is already in progress."


def notify(error: BaseException) -> str:
    """Maps any exception to the message shown to the user."""
    if isinstance(error, WalletAuthError):
        return error.notification
    return WalletAuthError.notification
