from pydantic import BaseModel, Field
from typing import Dict, Any, List, Optional
from datetime import datetime, timedelta, timezone
from enum import Enum


class AuthStatus(str, Enum):
    UNKNOWN = "UNKNOWN"
    CONNECTED = "CONNECTED"
    AUTHENTICATED = "AUTHENTICATED"


class FlowState(str, Enum):
    IDLE = "IDLE"
    NONCE_REQUESTED = "NONCE_REQUESTED"
    SIGNING = "SIGNING"
    VERIFYING = "VERIFYING"
    AUTHENTICATED = "AUTHENTICATED"
    FAILED = "FAILED"


class SelfCheckOutcome(str, Enum):
    MATCH = "MATCH"
    MISMATCH = "MISMATCH"
    SKIPPED = "SKIPPED"


# --- Identity service wire models ---
class NonceRequest(BaseModel):
    wallet_address: str = Field(..., description="Address the challenge is bound to.")
    chain_id: str = Field(..., description="Chain id of the connected wallet, as a string.")
    url: str = Field(..., description="Origin URL of the application requesting sign-in.")


class NonceChallenge(BaseModel):
    id: str = Field(..., description="Opaque challenge id, sent back on exchange.")
    nonce: str = Field(..., description="Exact string the wallet signs as a personal message.")


class ExchangeRequest(BaseModel):
    nonce_id: str = Field(..., description="Id of the challenge that was signed.")
    signature: str = Field(..., description="Hex-encoded 65 byte signature over the challenge nonce.")


class AppMetadata(BaseModel):
    provider: Optional[str] = None
    providers: List[str] = []


class User(BaseModel):
    id: str
    aud: str
    role: str
    email: Optional[str] = None
    phone: Optional[str] = None
    last_sign_in_at: Optional[datetime] = None
    app_metadata: AppMetadata = Field(default_factory=AppMetadata)
    user_metadata: Dict[str, Any] = {}
    identities: List[Any] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SessionCredential(BaseModel):
    access_token: str
    token_type: str = Field("bearer", description="Type of the token (usually 'bearer').")
    expires_in: int = Field(..., description="Access token lifetime in seconds.")
    refresh_token: str
    user: User

    def authorization_header(self) -> Dict[str, str]:
        """Header for authenticated requests made with this session."""
        return {"Authorization": f"{self.token_type.capitalize()} {self.access_token}"}

    def expires_at(self, issued_at: datetime | None = None) -> datetime:
        issued_at = issued_at or datetime.now(timezone.utc)
        return issued_at + timedelta(seconds=self.expires_in)


class SelfCheckResult(BaseModel):
    outcome: SelfCheckOutcome
    expected_address: Optional[str] = None
    recovered_address: Optional[str] = None
    reason: Optional[str] = Field(None, description="Why the check was skipped, if it was.")
