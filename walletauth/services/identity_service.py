import logging
from typing import Any, Dict, Type

import requests
from pydantic import ValidationError

from .. import config
from ..errors import ExchangeError, NonceRequestError, ServiceRequestError
from ..models.auth_models import (
    ExchangeRequest,
    NonceChallenge,
    NonceRequest,
    SessionCredential,
)

logger = logging.getLogger(__name__)


class IdentityServiceClient:
    """
    Client for the identity service's wallet sign-in endpoints.

    - ``POST {base}/nonce`` issues a challenge for a wallet address.
    - ``POST {base}/eth`` exchanges a signed challenge for a session.

    Any non-2xx response or transport failure is raised; there are no retries.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        session: Any = None,
    ):
        base_url = base_url or config.AUTH_API_URL
        if not base_url:
            raise ValueError("Identity service base URL is not configured (AUTH_API_URL).")
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key if api_key is not None else config.AUTH_API_KEY
        self.timeout = timeout if timeout is not None else config.AUTH_REQUEST_TIMEOUT
        # Anything with a requests-style .post(); a requests.Session by default
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _post(self, path: str, payload: Dict[str, Any], error_cls: Type[ServiceRequestError]) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        request_info = {"method": "POST", "url": url, "json": payload}
        logger.info(f"POST {url}")

        try:
            response = self.session.post(url, json=payload, headers=self._headers(), timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error(f"Transport error calling {url}: {type(e).__name__} - {e}")
            raise error_cls(f"Request to {url} failed: {e}", request=request_info) from e

        if not 200 <= response.status_code < 300:
            logger.warning(f"{url} returned HTTP {response.status_code}: {response.text}")
            raise error_cls(
                f"{url} returned HTTP {response.status_code}",
                status_code=response.status_code,
                body=response.text,
                request=request_info,
            )

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"{url} returned a non-JSON body: {response.text!r}")
            raise error_cls(
                f"{url} returned a non-JSON body",
                status_code=response.status_code,
                body=response.text,
                request=request_info,
            ) from e

    def request_nonce(self, wallet_address: str, chain_id: str, origin_url: str) -> NonceChallenge:
        payload = NonceRequest(wallet_address=wallet_address, chain_id=str(chain_id), url=origin_url)
        data = self._post("/nonce", payload.model_dump(), NonceRequestError)
        try:
            challenge = NonceChallenge(**data)
        except (ValidationError, TypeError) as e:
            raise NonceRequestError(f"Unexpected nonce response: {e}", body=str(data),
                                    request={"url": f"{self.base_url}/nonce", "json": payload.model_dump()}) from e
        logger.info(f"Received nonce challenge {challenge.id} for {wallet_address}")
        return challenge

    def exchange(self, nonce_id: str, signature: str) -> SessionCredential:
        payload = ExchangeRequest(nonce_id=nonce_id, signature=signature)
        data = self._post("/eth", payload.model_dump(), ExchangeError)
        try:
            credential = SessionCredential(**data)
        except (ValidationError, TypeError) as e:
            raise ExchangeError(f"Unexpected session response: {e}", body=str(data),
                                request={"url": f"{self.base_url}/eth", "json": payload.model_dump()}) from e
        logger.info(f"Session issued for user {credential.user.id}")
        return credential
