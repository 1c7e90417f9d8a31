from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordBearer

from flexkazi.core.errors import ValidationError
from flexkazi.core.security import Identity, IdentityProvider, get_identity_provider
from flexkazi.db.firebase_ops import get_db_ops_instance
from flexkazi.models.schemas import (
    GoogleSignInRequest,
    GuardDecision,
    LoginRequest,
    PasswordResetRequest,
    SignUpRequest,
    TokenResponse,
)
from flexkazi.services.profiles import ProfileBootstrapper, validate_email, validate_login, validate_signup
from flexkazi.services.session import SessionGuard

router = APIRouter(prefix="/auth", tags=["Authentication"])

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


def get_current_identity(token: str = Depends(oauth2_scheme)) -> Identity:
    """Session guard for protected routes: resolves the bearer ID token or fails with 401."""
    identity_provider: IdentityProvider = get_identity_provider()
    return identity_provider.verify_token(token)


def get_optional_identity(token: Optional[str] = Depends(optional_oauth2_scheme)) -> Optional[Identity]:
    if not token:
        return None
    return get_identity_provider().verify_token(token)


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def register_user(signup: SignUpRequest):
    validate_signup(signup)
    identity_provider: IdentityProvider = get_identity_provider()

    identity = identity_provider.create_account(
        email=signup.email.strip(),
        password=signup.password,
        display_name=signup.full_name.strip(),
    )
    ProfileBootstrapper(get_db_ops_instance()).register(identity, signup)

    session = identity_provider.sign_in(signup.email.strip(), signup.password)
    return TokenResponse(access_token=session.id_token, user_id=identity.uid, profile_created=True)


@router.post("/login", response_model=TokenResponse)
def login(credentials: LoginRequest):
    email = validate_login(credentials.email, credentials.password)
    identity_provider: IdentityProvider = get_identity_provider()

    session = identity_provider.sign_in(email, credentials.password)
    _, created = ProfileBootstrapper(get_db_ops_instance()).ensure_profile(session.identity)

    return TokenResponse(access_token=session.id_token, user_id=session.identity.uid, profile_created=created)


@router.post("/google", response_model=TokenResponse)
def google_sign_in(request: GoogleSignInRequest):
    if not request.id_token.strip():
        raise ValidationError("Google sign-in did not return a token.")
    identity_provider: IdentityProvider = get_identity_provider()

    session = identity_provider.sign_in_with_google(request.id_token.strip(), request.request_uri)
    _, created = ProfileBootstrapper(get_db_ops_instance()).ensure_profile(session.identity, signup_source="google")

    return TokenResponse(access_token=session.id_token, user_id=session.identity.uid, profile_created=created)


@router.post("/password-reset")
def password_reset(request: PasswordResetRequest):
    email = validate_email(request.email)
    get_identity_provider().send_password_reset(email)
    return {"message": "Password reset email sent! Check your inbox."}


@router.post("/logout")
def logout(identity: Identity = Depends(get_current_identity)):
    get_identity_provider().sign_out(identity.uid)
    return {"message": "Signed out."}


@router.get("/guard", response_model=GuardDecision)
def guard(view: str, identity: Optional[Identity] = Depends(get_optional_identity)):
    return SessionGuard().decide(view, identity)
