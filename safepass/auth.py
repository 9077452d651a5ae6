# ================================================================
# AUTH — dashboard admin accounts
# bcrypt password hashes (passlib) • HS256 bearer tokens (python-jose)
# logout = token jti on a denylist until the token would expire anyway
# ================================================================

from __future__ import annotations

import logging
import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Tuple

from jose import JWTError, jwt
from passlib.context import CryptContext

from safepass.cache import KeyCache
from safepass.config import Settings
from safepass.models import AdminUser
from safepass.store import ADMINS_PATH, BaseStore

logger = logging.getLogger(__name__)

pwd_ctx = CryptContext(schemes=["bcrypt"], deprecated="auto")

MAX_LOGIN_ATTEMPTS = 5
LOGIN_LOCKOUT_SECONDS = 300

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

FRIENDLY_MESSAGES: Dict[str, str] = {
    "auth/user-not-found":          "No account found with that email.",
    "auth/wrong-password":          "Incorrect password. Please try again.",
    "auth/invalid-email":           "Please enter a valid email address.",
    "auth/email-already-in-use":    "An account with this email already exists.",
    "auth/weak-password":           "Password must be at least 8 characters with an uppercase letter and a number.",
    "auth/too-many-requests":       "Too many attempts. Please wait and try again.",
    "auth/network-request-failed":  "Network error. Check your connection.",
    "auth/invalid-credential":      "Invalid email or password.",
    "auth/missing-display-name":    "Please enter your full name.",
    "auth/password-mismatch":       "Passwords do not match!",
    "auth/user-token-expired":      "Your session has expired. Please sign in again.",
}
DEFAULT_MESSAGE = "Something went wrong. Please try again."


def friendly_error(code: Optional[str]) -> str:
    return FRIENDLY_MESSAGES.get(code or "", DEFAULT_MESSAGE)


class AuthError(Exception):
    def __init__(self, code: str):
        self.code = code
        self.message = friendly_error(code)
        super().__init__(self.message)


def validate_email(email: str) -> bool:
    return bool(EMAIL_RE.match(email or ""))


def password_requirements(password: str) -> Dict[str, bool]:
    """Individual strength checks; only length, uppercase and number are enforced."""
    checks = {
        "length":    len(password) >= 8,
        "uppercase": bool(re.search(r"[A-Z]", password)),
        "lowercase": bool(re.search(r"[a-z]", password)),
        "number":    bool(re.search(r"[0-9]", password)),
        "special":   bool(re.search(r"[!@#$%^&*]", password)),
    }
    checks["is_valid"] = checks["length"] and checks["uppercase"] and checks["number"]
    return checks


def _profile_to_user(profile: dict) -> AdminUser:
    return AdminUser(
        uid=str(profile.get("uid", "")),
        name=str(profile.get("name") or ""),
        email=str(profile.get("email") or ""),
        created_at=str(profile.get("createdAt") or ""),
        role=str(profile.get("role") or "admin"),
    )


class AuthService:
    def __init__(self, store: BaseStore, cache: KeyCache, settings: Settings):
        self.store = store
        self.cache = cache
        self.settings = settings

    # ── profiles ─────────────────────────────────────────────

    def _profiles(self) -> Dict[str, dict]:
        try:
            snapshot = self.store.get(ADMINS_PATH)
        except Exception as e:
            logger.exception("Reading admin accounts failed")
            raise AuthError("auth/network-request-failed") from e
        return {k: v for k, v in (snapshot or {}).items() if isinstance(v, dict)}

    def _find_by_email(self, email: str) -> Optional[dict]:
        for profile in self._profiles().values():
            if str(profile.get("email", "")).lower() == email:
                return profile
        return None

    # ── tokens ───────────────────────────────────────────────

    def make_token(self, sub: str) -> str:
        exp = datetime.now(timezone.utc) + timedelta(minutes=self.settings.access_token_expire_minutes)
        claims = {"sub": sub, "exp": exp, "jti": uuid.uuid4().hex}
        return jwt.encode(claims, self.settings.jwt_secret, algorithm=self.settings.jwt_algorithm)

    def decode_token(self, token: str) -> dict:
        try:
            payload = jwt.decode(token, self.settings.jwt_secret, algorithms=[self.settings.jwt_algorithm])
        except JWTError:
            raise AuthError("auth/user-token-expired")
        if not payload.get("sub") or not payload.get("jti"):
            raise AuthError("auth/invalid-credential")
        if self.cache.get(f"revoked:{payload['jti']}"):
            raise AuthError("auth/user-token-expired")
        return payload

    # ================================================================
    # SIGNUP / LOGIN / LOGOUT
    # ================================================================

    def signup(
        self,
        full_name: str,
        email: str,
        password: str,
        confirm_password: Optional[str] = None,
    ) -> AdminUser:
        name = (full_name or "").strip()
        email = (email or "").strip().lower()
        if not name:
            raise AuthError("auth/missing-display-name")
        if not validate_email(email):
            raise AuthError("auth/invalid-email")
        if confirm_password is not None and confirm_password != password:
            raise AuthError("auth/password-mismatch")
        if not password_requirements(password)["is_valid"]:
            raise AuthError("auth/weak-password")
        if self._find_by_email(email):
            raise AuthError("auth/email-already-in-use")

        uid = uuid.uuid4().hex
        profile = {
            "uid":          uid,
            "name":         name,
            "email":        email,
            "createdAt":    datetime.now(timezone.utc).isoformat(),
            "role":         "admin",
            "passwordHash": pwd_ctx.hash(password),
        }
        try:
            self.store.put(ADMINS_PATH, uid, profile)
        except Exception as e:
            logger.exception("Saving admin %s failed", email)
            raise AuthError("auth/network-request-failed") from e

        logger.info("Created admin %s (%s)", uid, email)
        return _profile_to_user(profile)

    def login(self, email: str, password: str) -> Tuple[AdminUser, str]:
        email = (email or "").strip().lower()
        if not validate_email(email):
            raise AuthError("auth/invalid-email")

        attempts_key = f"login_attempts:{email}"
        attempts = int(self.cache.get(attempts_key) or 0)
        if attempts >= MAX_LOGIN_ATTEMPTS:
            raise AuthError("auth/too-many-requests")

        profile = self._find_by_email(email)
        if profile is None:
            raise AuthError("auth/user-not-found")
        stored = profile.get("passwordHash")
        if not stored or not pwd_ctx.verify(password, stored):
            self.cache.set(attempts_key, str(attempts + 1), ex=LOGIN_LOCKOUT_SECONDS)
            logger.warning("Failed login for %s (%d/%d)", email, attempts + 1, MAX_LOGIN_ATTEMPTS)
            raise AuthError("auth/wrong-password")

        self.cache.delete(attempts_key)
        user = _profile_to_user(profile)
        logger.info("Admin %s signed in", user.uid)
        return user, self.make_token(user.uid)

    def logout(self, token: str) -> None:
        payload = self.decode_token(token)
        remaining = int(payload["exp"] - datetime.now(timezone.utc).timestamp())
        self.cache.set(f"revoked:{payload['jti']}", "1", ex=max(remaining, 1))
        logger.info("Admin %s signed out", payload["sub"])

    def current_user(self, token: str) -> AdminUser:
        payload = self.decode_token(token)
        profile = self._profiles().get(payload["sub"])
        if profile is None:
            raise AuthError("auth/user-not-found")
        return _profile_to_user(profile)
