"""Request authentication decorators and the Google sign-in exchange."""
from __future__ import annotations

import secrets
from functools import wraps

import requests
from flask import current_app, g, request

from .errors import AuthenticationError, AuthorizationError, DependencyError, ValidationError
from .gateway import Gateway, get_gateway
from .tokens import CUSTOMER, STAFF, USER, Principal, get_token_issuer


def extract_bearer_token(header: str | None) -> str | None:
    if not header or not header.startswith("Bearer "):
        return None
    token = header[7:].strip()
    if not token or token in ("null", "undefined"):
        return None
    return token


def _load_account(gateway: Gateway, principal: Principal):
    """Resolve a verified principal to its active database row."""
    repository = {
        STAFF: gateway.staff,
        USER: gateway.users,
        CUSTOMER: gateway.customers,
    }[principal.kind]
    account = repository.find_unique(principal.principal_id)
    if account is None:
        raise AuthenticationError(f"{principal.kind.capitalize()} account not found")
    if not account.is_active:
        raise AuthenticationError(f"{principal.kind.capitalize()} account is inactive")
    return account


def authenticate_request(kinds: tuple[str, ...]) -> Principal:
    token = extract_bearer_token(request.headers.get("Authorization"))
    if token is None:
        raise AuthenticationError("No valid authorization token provided")

    principal = get_token_issuer().verify(token)
    if principal.kind not in kinds:
        raise AuthenticationError("Invalid token type")

    account = _load_account(get_gateway(), principal)
    g.principal = principal
    g.account = account
    return principal


def staff_required(view):
    """Allow staff members and legacy back-office users."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        authenticate_request((STAFF, USER))
        return view(*args, **kwargs)

    return wrapper


def admin_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        authenticate_request((STAFF, USER))
        if g.account.role != "admin":
            raise AuthorizationError("Admin access required")
        return view(*args, **kwargs)

    return wrapper


def user_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        authenticate_request((USER,))
        return view(*args, **kwargs)

    return wrapper


def customer_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        authenticate_request((CUSTOMER,))
        return view(*args, **kwargs)

    return wrapper


def customer_optional(view):
    """Attach the customer when a valid customer token is sent; never reject."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        g.principal = None
        g.account = None
        if extract_bearer_token(request.headers.get("Authorization")):
            try:
                authenticate_request((CUSTOMER,))
            except AuthenticationError as exc:
                current_app.logger.info("Ignoring invalid customer token: %s", exc.message)
                g.principal = None
                g.account = None
        return view(*args, **kwargs)

    return wrapper


# ---------------------------------------------------------------------------
# Google sign-in
# ---------------------------------------------------------------------------

def verify_google_id_token(id_token: str) -> dict[str, object]:
    """Validate an ID token with Google's tokeninfo endpoint and return its claims."""
    try:
        response = requests.get(
            current_app.config["GOOGLE_TOKENINFO_URL"],
            params={"id_token": id_token},
            timeout=10,
        )
    except requests.RequestException as exc:
        current_app.logger.exception("Google token verification failed", exc_info=exc)
        raise DependencyError("Failed to verify Google token") from exc

    if response.status_code != 200:
        raise AuthenticationError("Invalid Google token")

    profile = response.json()
    audience = current_app.config.get("GOOGLE_CLIENT_ID")
    if audience and profile.get("aud") != audience:
        raise AuthenticationError("Google token was issued for another client")
    if not profile.get("sub"):
        raise AuthenticationError("Invalid Google token")
    return profile


def exchange_oauth_profile(gateway: Gateway, profile: dict[str, object]) -> Principal:
    """Link or create the back-office user for a verified Google profile.

    Lookup order is Google id, then email. New accounts always get the
    ``staff`` role; admins are only created by the seeding commands.
    """
    google_id = str(profile.get("sub") or profile.get("id") or "")
    email = str(profile.get("email") or "").strip().lower()
    name = str(profile.get("name") or "").strip()
    picture = profile.get("picture")

    if not google_id:
        raise ValidationError("Google profile is missing an id")

    user = gateway.users.find_first(google_id=google_id)
    if user is None and email:
        user = gateway.users.find_first(email=email)
        if user is not None:
            gateway.users.update(
                user,
                google_id=google_id,
                google_profile={"name": name, "email": email},
                avatar=picture or user.avatar,
            )

    if user is None:
        if not email:
            raise ValidationError("Google profile is missing an email address")
        username = email.split("@")[0]
        if gateway.users.find_first(username=username) is not None:
            username = f"{username}{secrets.randbelow(10000)}"
        user = gateway.users.create(
            username=username,
            email=email,
            name=name or username,
            google_id=google_id,
            google_profile={"name": name, "email": email},
            avatar=picture,
            role="staff",
            is_active=True,
        )

    if not user.is_active:
        raise AuthorizationError("Your account has been deactivated")

    return Principal(kind=USER, principal_id=user.user_id, claims={"role": user.role})
