"""Signed session tokens for staff, legacy users and customers."""
from __future__ import annotations

import time
from dataclasses import dataclass, field

from flask import current_app
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from .errors import ExpiredTokenError, InvalidTokenError

STAFF = "staff"
USER = "user"
CUSTOMER = "customer"

# Kind-specific id claim, kept for tokens issued before the "type" claim existed.
ID_CLAIMS = {
    STAFF: "staffId",
    USER: "userId",
    CUSTOMER: "customerId",
}

TOKEN_MAX_AGE = {
    STAFF: 24 * 60 * 60,
    USER: 24 * 60 * 60,
    CUSTOMER: 7 * 24 * 60 * 60,
}


@dataclass(frozen=True)
class Principal:
    kind: str
    principal_id: int
    claims: dict[str, object] = field(default_factory=dict)

    @property
    def role(self) -> str | None:
        return self.claims.get("role")

    @property
    def is_back_office(self) -> bool:
        return self.kind in (STAFF, USER)


class TokenIssuer:
    def __init__(self, secret_key: str, salt: str = "auth-token") -> None:
        self._serializer = URLSafeTimedSerializer(secret_key, salt=salt)

    def issue(self, principal_id: int, kind: str, claims: dict[str, object] | None = None) -> str:
        if kind not in ID_CLAIMS:
            raise ValueError(f"unknown principal kind: {kind}")
        payload = dict(claims or {})
        payload["type"] = kind
        payload[ID_CLAIMS[kind]] = principal_id
        return self._serializer.dumps(payload)

    def verify(self, token: str, now: float | None = None) -> Principal:
        if not token or token in ("null", "undefined"):
            raise InvalidTokenError("No token provided")
        try:
            payload, signed_at = self._serializer.loads(
                token, max_age=max(TOKEN_MAX_AGE.values()), return_timestamp=True
            )
        except SignatureExpired as exc:
            raise ExpiredTokenError("Token has expired") from exc
        except BadSignature as exc:
            raise InvalidTokenError("Invalid token") from exc

        if not isinstance(payload, dict):
            raise InvalidTokenError("Invalid token payload")

        kind = classify_payload(payload)
        principal_id = payload.get(ID_CLAIMS[kind])
        if principal_id is None:
            raise InvalidTokenError("Invalid token payload")

        age = (now if now is not None else time.time()) - signed_at.timestamp()
        if age > TOKEN_MAX_AGE[kind]:
            raise ExpiredTokenError("Token has expired")

        claims = {
            key: value
            for key, value in payload.items()
            if key != "type" and key not in ID_CLAIMS.values()
        }
        return Principal(kind=kind, principal_id=principal_id, claims=claims)


def classify_payload(payload: dict[str, object]) -> str:
    kind = payload.get("type")
    if kind in ID_CLAIMS:
        return kind
    if kind is not None:
        raise InvalidTokenError("Invalid token type")
    for candidate, claim in ID_CLAIMS.items():
        if payload.get(claim) is not None:
            return candidate
    raise InvalidTokenError("Invalid token payload")


def get_token_issuer() -> TokenIssuer:
    issuer = current_app.extensions.get("token_issuer")
    if issuer is None:
        issuer = TokenIssuer(current_app.config["SECRET_KEY"], current_app.config.get("TOKEN_SALT", "auth-token"))
        current_app.extensions["token_issuer"] = issuer
    return issuer


def issue_staff_token(staff) -> str:
    return get_token_issuer().issue(staff.staff_id, STAFF, {"email": staff.email, "role": staff.role})


def issue_user_token(user) -> str:
    return get_token_issuer().issue(user.user_id, USER, {"role": user.role})


def issue_customer_token(customer) -> str:
    return get_token_issuer().issue(customer.customer_id, CUSTOMER, {"email": customer.email})
