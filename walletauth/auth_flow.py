# walletauth/auth_flow.py

import logging
import threading
from contextlib import contextmanager
from typing import Set

from .errors import (
    FlowBusyError,
    FlowOrderError,
    SignatureError,
    StaleChallengeError,
    UserAborted,
    WalletAuthError,
)
from .models.auth_models import (
    AuthStatus,
    FlowState,
    NonceChallenge,
    SelfCheckOutcome,
    SelfCheckResult,
    SessionCredential,
)
from .services import signature_service
from .services.identity_service import IdentityServiceClient
from .services.signer_service import WalletSigner

logger = logging.getLogger(__name__)

# A new attempt may supersede one that is waiting between steps
_ATTEMPT_START_STATES = {
    FlowState.IDLE,
    FlowState.FAILED,
    FlowState.NONCE_REQUESTED,
    FlowState.SIGNING,
}


def self_check(signature: str, message: str, expected_address: str | None) -> SelfCheckResult:
    """
    Recovers the signer of ``message`` and compares it with ``expected_address``.

    This is a diagnostic only. The identity service makes the authoritative
    check on exchange, so a mismatch or an unrecoverable signature is reported
    in the result rather than raised.
    """
    if not expected_address:
        return SelfCheckResult(outcome=SelfCheckOutcome.SKIPPED, reason="No expected address")
    try:
        recovered = signature_service.recover_signer_for_message(signature, message)
    except SignatureError as e:
        return SelfCheckResult(
            outcome=SelfCheckOutcome.SKIPPED,
            expected_address=expected_address,
            reason=f"{type(e).__name__}: {e}",
        )
    outcome = (
        SelfCheckOutcome.MATCH
        if signature_service.addresses_match(recovered, expected_address)
        else SelfCheckOutcome.MISMATCH
    )
    return SelfCheckResult(outcome=outcome, expected_address=expected_address, recovered_address=recovered)


class AuthFlow:
    """
    Drives one wallet sign-in at a time: nonce request, signing, exchange.

    Steps must run in order for the same challenge. Only one step may be in
    flight; a second concurrent call raises ``FlowBusyError``. Starting a new
    attempt makes the previous attempt's challenge stale. ``cancel`` and
    ``reset`` may be called from another thread while a step is blocked; the
    blocked step then raises ``UserAborted`` and its result is discarded.
    """

    def __init__(self, client: IdentityServiceClient | None = None):
        self.client = client or IdentityServiceClient()
        self._step_lock = threading.Lock()
        self._fields_lock = threading.RLock()
        self._attempt = 0
        self._exchanged_ids: Set[str] = set()
        self._state = FlowState.IDLE
        self._status = AuthStatus.UNKNOWN
        self.wallet_address: str | None = None
        self.chain_id: str | None = None
        self.origin_url: str | None = None
        self._clear_attempt_fields()
        self._last_error: BaseException | None = None

    # --- Read-only views ---
    @property
    def state(self) -> FlowState:
        return self._state

    @property
    def status(self) -> AuthStatus:
        return self._status

    @property
    def attempt(self) -> int:
        return self._attempt

    @property
    def challenge(self) -> NonceChallenge | None:
        return self._challenge

    @property
    def signature(self) -> str | None:
        return self._signature

    @property
    def self_check_result(self) -> SelfCheckResult | None:
        return self._self_check

    @property
    def credential(self) -> SessionCredential | None:
        return self._credential

    @property
    def last_error(self) -> BaseException | None:
        return self._last_error

    # --- Internal helpers ---
    def _clear_attempt_fields(self):
        self._challenge: NonceChallenge | None = None
        self._signature: str | None = None
        self._self_check: SelfCheckResult | None = None
        self._credential: SessionCredential | None = None

    def _transition(self, new_state: FlowState):
        logger.debug(f"Attempt {self._attempt}: {self._state.value} -> {new_state.value}")
        self._state = new_state

    @contextmanager
    def _step(self, name: str):
        if not self._step_lock.acquire(blocking=False):
            raise FlowBusyError(f"Cannot {name}: another sign-in step is in progress")
        try:
            yield
        finally:
            self._step_lock.release()

    def _ensure_current(self, attempt: int):
        if attempt != self._attempt:
            logger.info(f"Attempt {attempt} was abandoned; discarding its result.")
            raise UserAborted("Sign-in attempt was cancelled or superseded")

    def _fail(self, attempt: int, error: BaseException):
        with self._fields_lock:
            if attempt != self._attempt:
                return
            if isinstance(error, WalletAuthError):
                logger.warning(f"Attempt {attempt} failed with {type(error).__name__}: {error}")
            else:
                logger.error(f"Attempt {attempt} failed unexpectedly: {error}", exc_info=True)
            self._clear_attempt_fields()
            self._last_error = error
            self._status = AuthStatus.UNKNOWN
            self._transition(FlowState.FAILED)

    # --- Protocol steps ---
    def connect(self, wallet_address: str, chain_id: str | int):
        """Records a linked wallet. Linking itself happens outside this flow."""
        with self._fields_lock:
            self.wallet_address = wallet_address
            self.chain_id = str(chain_id)
            if self._status != AuthStatus.AUTHENTICATED:
                self._status = AuthStatus.CONNECTED
        logger.info(f"Wallet {wallet_address} connected on chain {chain_id}")

    def request_nonce(self, wallet_address: str, chain_id: str | int, origin_url: str) -> NonceChallenge:
        """Starts a new attempt by requesting a challenge for ``wallet_address``."""
        with self._step("request a nonce"):
            with self._fields_lock:
                if self._state not in _ATTEMPT_START_STATES:
                    raise FlowOrderError(f"Cannot start a sign-in from state {self._state.value}; reset first")
                if self._challenge is not None:
                    logger.info(f"Superseding attempt {self._attempt} (challenge {self._challenge.id})")
                self._attempt += 1
                attempt = self._attempt
                self._clear_attempt_fields()
                self._last_error = None
                self.wallet_address = wallet_address
                self.chain_id = str(chain_id)
                self.origin_url = origin_url
                self._transition(FlowState.IDLE)

            try:
                challenge = self.client.request_nonce(wallet_address, str(chain_id), origin_url)
            except Exception as e:
                self._fail(attempt, e)
                raise

            with self._fields_lock:
                self._ensure_current(attempt)
                self._challenge = challenge
                self._transition(FlowState.NONCE_REQUESTED)
            return challenge

    def sign_challenge(self, challenge: NonceChallenge, signer: WalletSigner) -> str:
        """Has ``signer`` sign the challenge nonce, then self-checks the signer address."""
        with self._step("sign the challenge"):
            with self._fields_lock:
                if self._state != FlowState.NONCE_REQUESTED:
                    raise FlowOrderError(f"Cannot sign from state {self._state.value}; request a nonce first")
                if self._challenge is None or challenge.id != self._challenge.id:
                    raise StaleChallengeError(f"Challenge {challenge.id} does not belong to the current attempt")
                attempt = self._attempt
                expected_address = self.wallet_address
                self._transition(FlowState.SIGNING)

            try:
                signature = signer.sign_personal_message(challenge.nonce)
            except WalletAuthError as e:
                self._fail(attempt, e)
                raise
            except Exception as e:
                aborted = UserAborted(f"Signer failed: {e}")
                self._fail(attempt, aborted)
                raise aborted from e
            if not isinstance(signature, str) or not signature:
                aborted = UserAborted("Signer returned no signature")
                self._fail(attempt, aborted)
                raise aborted

            result = self_check(signature, challenge.nonce, expected_address)
            if result.outcome == SelfCheckOutcome.MISMATCH:
                logger.warning(
                    f"Signature for challenge {challenge.id} recovers to {result.recovered_address}, "
                    f"expected {expected_address}; the identity service will decide"
                )
            elif result.outcome == SelfCheckOutcome.SKIPPED:
                logger.warning(f"Signer self-check skipped for challenge {challenge.id}: {result.reason}")
            else:
                logger.debug(f"Signer self-check matched {expected_address}")

            with self._fields_lock:
                self._ensure_current(attempt)
                self._signature = signature
                self._self_check = result
            return signature

    def exchange(self, challenge_id: str, signature: str) -> SessionCredential:
        """Submits the signed challenge and stores the issued session."""
        with self._step("exchange the signature"):
            with self._fields_lock:
                if challenge_id in self._exchanged_ids:
                    raise StaleChallengeError(f"Challenge {challenge_id} was already exchanged")
                if self._state != FlowState.SIGNING or self._signature is None:
                    raise FlowOrderError(f"Cannot exchange from state {self._state.value}; sign a challenge first")
                if challenge_id != self._challenge.id:
                    raise StaleChallengeError(f"Challenge {challenge_id} does not belong to the current attempt")
                if signature != self._signature:
                    raise FlowOrderError(f"Signature was not produced for challenge {challenge_id} in this attempt")
                attempt = self._attempt
                # The service may consume the nonce even if the call fails
                self._exchanged_ids.add(challenge_id)
                self._transition(FlowState.VERIFYING)

            logger.info(f"Exchanging challenge {challenge_id} (signature {signature[:10]}...)")
            try:
                credential = self.client.exchange(challenge_id, signature)
            except Exception as e:
                self._fail(attempt, e)
                raise

            with self._fields_lock:
                self._ensure_current(attempt)
                self._credential = credential
                self._status = AuthStatus.AUTHENTICATED
                self._transition(FlowState.AUTHENTICATED)
            logger.info(f"Authenticated user {credential.user.id} for {self.wallet_address}")
            return credential

    def login(
        self,
        wallet_address: str,
        chain_id: str | int,
        origin_url: str,
        signer: WalletSigner,
    ) -> SessionCredential:
        """Runs one complete attempt."""
        challenge = self.request_nonce(wallet_address, chain_id, origin_url)
        signature = self.sign_challenge(challenge, signer)
        return self.exchange(challenge.id, signature)

    def cancel(self):
        """Abandons the in-flight attempt, if any."""
        with self._fields_lock:
            waiting = self._state in (FlowState.NONCE_REQUESTED, FlowState.SIGNING, FlowState.VERIFYING)
            if not waiting and not self._step_lock.locked():
                return
            abandoned = self._attempt
            self._attempt += 1
            self._clear_attempt_fields()
            self._last_error = UserAborted(f"Attempt {abandoned} was cancelled")
            self._status = AuthStatus.UNKNOWN
            self._transition(FlowState.FAILED)
        logger.info(f"Cancelled sign-in attempt {abandoned}")

    def reset(self):
        """Returns to IDLE/UNKNOWN and forgets the wallet, challenge and session."""
        with self._fields_lock:
            if (
                self._state == FlowState.IDLE
                and self._status == AuthStatus.UNKNOWN
                and self._challenge is None
                and self.wallet_address is None
                and not self._step_lock.locked()
            ):
                return
            # Invalidate anything still in flight
            self._attempt += 1
            self._clear_attempt_fields()
            self._last_error = None
            self._status = AuthStatus.UNKNOWN
            self.wallet_address = None
            self.chain_id = None
            self.origin_url = None
            self._transition(FlowState.IDLE)
        logger.info("Sign-in state reset")
