from dataclasses import dataclass
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from app.core.errors import AuthenticationError
from app.core.settings import settings

# Roles known to the order engine. Sessions/OTP live in the auth service;
# it hands out Fernet tokens sealed with the shared ENCRYPTION_KEY.
ROLE_BUYER = "buyer"
ROLE_SELLER = "seller"
ROLE_ADMIN = "admin"
ROLE_DISTRIBUTOR = "distributor"
ROLES = {ROLE_BUYER, ROLE_SELLER, ROLE_ADMIN, ROLE_DISTRIBUTOR}

cipher = Fernet(settings.ENCRYPTION_KEY.encode())


@dataclass(frozen=True)
class CurrentUser:
    id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def issue_token(user_id: int, role: str) -> str:
    if role not in ROLES:
        raise ValueError(f"Unknown role '{role}'")
    return cipher.encrypt(f"{user_id}:{role}".encode()).decode()


def decode_token(token: str, ttl: Optional[int] = None) -> CurrentUser:
    """
    Verifies signature + age and returns the caller.
    Raises AuthenticationError for anything that is not a well-formed, fresh token.
    """
    try:
        raw = cipher.decrypt(token.encode(), ttl=ttl or settings.TOKEN_TTL_SECONDS).decode()
    except InvalidToken:
        raise AuthenticationError("Invalid or expired token")

    user_id, _, role = raw.partition(":")
    if not user_id.isdigit() or role not in ROLES:
        raise AuthenticationError("Malformed token payload")
    return CurrentUser(id=int(user_id), role=role)
