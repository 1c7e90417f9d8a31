import pytest
import requests
from unittest.mock import MagicMock

from flexkazi.core.errors import AuthError, RemoteUnavailableError
from flexkazi.core.security import IdentityProvider
from flexkazi.db.firebase_ops import FirebaseManager


def _response(status_code, payload):
    response = MagicMock()
    response.status_code = status_code
    response.content = b"{}"
    response.json.return_value = payload
    return response


@pytest.fixture
def identity_provider(monkeypatch):
    monkeypatch.setattr(FirebaseManager, "_app", object())
    identity_provider = IdentityProvider(api_key="web-key", timeout=3)
    identity_provider._session = MagicMock()
    return identity_provider


def test_sign_in_returns_identity_and_token(identity_provider):
    identity_provider._session.post.return_value = _response(200, {
        "localId": "u1",
        "email": "amina@example.com",
        "displayName": "Amina Otieno",
        "idToken": "id-token",
        "refreshToken": "refresh-token",
    })

    result = identity_provider.sign_in("amina@example.com", "secret1")

    assert result.identity.uid == "u1"
    assert result.id_token == "id-token"
    _, kwargs = identity_provider._session.post.call_args
    assert kwargs["params"] == {"key": "web-key"}
    assert kwargs["timeout"] == 3


def test_sign_in_maps_provider_error(identity_provider):
    identity_provider._session.post.return_value = _response(400, {"error": {"message": "INVALID_PASSWORD"}})

    with pytest.raises(AuthError, match="Incorrect password"):
        identity_provider.sign_in("amina@example.com", "wrong")


def test_rate_limited_sign_in(identity_provider):
    identity_provider._session.post.return_value = _response(400, {"error": {"message": "TOO_MANY_ATTEMPTS_TRY_LATER"}})

    with pytest.raises(AuthError, match="Too many failed attempts"):
        identity_provider.sign_in("amina@example.com", "wrong")


def test_network_failure_is_unavailable(identity_provider):
    identity_provider._session.post.side_effect = requests.exceptions.ConnectTimeout("timed out")

    with pytest.raises(RemoteUnavailableError):
        identity_provider.send_password_reset("amina@example.com")


def test_server_error_is_unavailable(identity_provider):
    identity_provider._session.post.return_value = _response(503, {})

    with pytest.raises(RemoteUnavailableError):
        identity_provider.sign_in("amina@example.com", "secret1")


def test_missing_api_key(monkeypatch):
    monkeypatch.setattr(FirebaseManager, "_app", object())
    with pytest.raises(RemoteUnavailableError, match="not configured"):
        IdentityProvider(api_key="").sign_in("amina@example.com", "secret1")


def test_google_sign_in_exchanges_id_token(identity_provider):
    identity_provider._session.post.return_value = _response(200, {
        "localId": "g-uid",
        "email": "wanjiru@gmail.com",
        "displayName": "Wanjiru Kamau",
        "idToken": "id-token",
        "refreshToken": "refresh-token",
    })

    result = identity_provider.sign_in_with_google("google-token", "http://localhost")

    assert result.identity.uid == "g-uid"
    assert result.identity.display_name == "Wanjiru Kamau"
    assert result.refresh_token == "refresh-token"
    args, kwargs = identity_provider._session.post.call_args
    assert args[0].endswith("accounts:signInWithIdp")
    assert kwargs["json"]["postBody"] == "id_token=google-token&providerId=google.com"
    assert kwargs["json"]["requestUri"] == "http://localhost"
    assert kwargs["json"]["returnSecureToken"] is True


def test_google_sign_in_rejected_token(identity_provider):
    identity_provider._session.post.return_value = _response(400, {"error": {"message": "INVALID_IDP_RESPONSE : bad token"}})

    with pytest.raises(AuthError, match="Google sign-in failed"):
        identity_provider.sign_in_with_google("stale", "http://localhost")
