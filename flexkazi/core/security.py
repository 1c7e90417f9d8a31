from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests
from firebase_admin import auth
from firebase_admin import exceptions as firebase_exceptions

from flexkazi.core.config import get_settings
from flexkazi.core.errors import AuthError, RemoteUnavailableError
from flexkazi.core.logging import get_logger
from flexkazi.db.firebase_ops import FirebaseManager

logger = get_logger(__name__)

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1/accounts:{action}"

# Identity Toolkit error codes -> user-facing messages
AUTH_ERROR_MESSAGES = {
    "EMAIL_EXISTS": "This email is already registered",
    "EMAIL_NOT_FOUND": "No account found with this email",
    "INVALID_PASSWORD": "Incorrect password",
    "INVALID_LOGIN_CREDENTIALS": "Incorrect email or password",
    "INVALID_EMAIL": "Invalid email address",
    "USER_DISABLED": "This account has been disabled",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "Too many failed attempts. Please try again later",
    "WEAK_PASSWORD": "Password is too weak",
    "INVALID_IDP_RESPONSE": "Google sign-in failed. Please try again",
}


@dataclass(frozen=True)
class Identity:
    uid: str
    email: str = ""
    display_name: str = ""


@dataclass(frozen=True)
class SignInResult:
    identity: Identity
    id_token: str
    refresh_token: str = ""


def auth_error_message(code: str, default: str) -> str:
    # Codes may carry a suffix, e.g. "WEAK_PASSWORD : Password should be at least 6 characters"
    key = (code or "").split(" ")[0].strip()
    return AUTH_ERROR_MESSAGES.get(key, default)


class IdentityProvider:
    """
    Firebase Authentication, consumed as a black box.
    Account administration goes through the Admin SDK; password sign-in and
    reset emails go through the Identity Toolkit REST API, which the Admin SDK does not cover.
    """

    def __init__(self, api_key: Optional[str] = None, timeout: Optional[float] = None):
        settings = get_settings()
        self.app = FirebaseManager().get_app()
        self.api_key = api_key if api_key is not None else settings.web_api_key
        self.timeout = timeout if timeout is not None else settings.http_timeout
        self._session = requests.Session()

    def _post(self, action: str, payload: Dict[str, Any], default_error: str) -> Dict[str, Any]:
        if not self.api_key:
            raise RemoteUnavailableError("Sign-in is not configured.")
        try:
            response = self._session.post(
                IDENTITY_TOOLKIT_URL.format(action=action),
                params={"key": self.api_key},
                json=payload,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Identity provider call '{action}' failed: {e}")
            raise RemoteUnavailableError("FlexKazi is unreachable right now. Please try again.") from e

        if response.status_code >= 500:
            logger.error(f"Identity provider returned {response.status_code} for '{action}'")
            raise RemoteUnavailableError("FlexKazi is unreachable right now. Please try again.")
        data = response.json() if response.content else {}
        if response.status_code >= 400:
            code = (data.get("error") or {}).get("message", "")
            raise AuthError(auth_error_message(code, default_error))
        return data

    def create_account(self, email: str, password: str, display_name: str = "") -> Identity:
        try:
            record = auth.create_user(email=email, password=password, display_name=display_name or None, app=self.app)
        except auth.EmailAlreadyExistsError as e:
            raise AuthError(AUTH_ERROR_MESSAGES["EMAIL_EXISTS"]) from e
        except ValueError as e:
            raise AuthError(str(e)) from e
        except firebase_exceptions.FirebaseError as e:
            logger.error(f"Could not create account: {e}")
            raise RemoteUnavailableError("Failed to create account") from e
        logger.info(f"Created account {record.uid}")
        return Identity(uid=record.uid, email=record.email or email, display_name=record.display_name or "")

    def sign_in(self, email: str, password: str) -> SignInResult:
        data = self._post(
            "signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True},
            "Failed to sign in",
        )
        identity = Identity(uid=data["localId"], email=data.get("email", email), display_name=data.get("displayName", ""))
        return SignInResult(identity=identity, id_token=data["idToken"], refresh_token=data.get("refreshToken", ""))

    def sign_in_with_google(self, google_id_token: str, request_uri: str) -> SignInResult:
        """Exchange a Google ID token from the browser's Google sign-in for a Firebase session."""
        data = self._post(
            "signInWithIdp",
            {
                "postBody": f"id_token={google_id_token}&providerId=google.com",
                "requestUri": request_uri,
                "returnSecureToken": True,
                "returnIdpCredential": True,
            },
            "Failed to sign in with Google",
        )
        identity = Identity(uid=data["localId"], email=data.get("email", ""), display_name=data.get("displayName", ""))
        return SignInResult(identity=identity, id_token=data["idToken"], refresh_token=data.get("refreshToken", ""))

    def send_password_reset(self, email: str) -> None:
        self._post("sendOobCode", {"requestType": "PASSWORD_RESET", "email": email}, "Failed to send reset email")

    def sign_out(self, uid: str) -> None:
        try:
            auth.revoke_refresh_tokens(uid, app=self.app)
        except firebase_exceptions.FirebaseError as e:
            logger.error(f"Could not revoke tokens for {uid}: {e}")
            raise RemoteUnavailableError("Error signing out") from e

    def verify_token(self, id_token: str) -> Identity:
        """Resolve the current session from a bearer ID token."""
        try:
            claims = auth.verify_id_token(id_token, app=self.app, check_revoked=True)
        except auth.UserDisabledError as e:
            raise AuthError(AUTH_ERROR_MESSAGES["USER_DISABLED"]) from e
        except (auth.RevokedIdTokenError, auth.ExpiredIdTokenError) as e:
            raise AuthError("Your session has expired. Please sign in again.") from e
        except (auth.InvalidIdTokenError, ValueError) as e:
            raise AuthError("Could not validate credentials") from e
        except firebase_exceptions.FirebaseError as e:
            logger.error(f"Token verification failed: {e}")
            raise RemoteUnavailableError("FlexKazi is unreachable right now. Please try again.") from e
        return Identity(uid=claims["uid"], email=claims.get("email", ""), display_name=claims.get("name", ""))


def get_identity_provider() -> IdentityProvider:
    return IdentityProvider()
