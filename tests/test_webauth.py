import base64
import json
from urllib.parse import parse_qs, urlparse

import pytest

from tools import issuer, webauth
from utils import oidc4vc
from utils.errors import AuthenticationError, VerificationError

VERIFY_URL = "http://verifier.test/openid4vc/verify"
VP_REQUEST = "openid4vp://authorize?request_uri=http%3A%2F%2Fverifier.test%2Frequest&state=vs-1"


def passport_vp(**subject):
    claims = {"webId": "alice@example.com", "passportNumber": "X1234567", "givenName": "Alice", "familyName": "Doe"}
    claims.update(subject)
    return {
        "verifiableCredential": [
            {"type": ["VerifiableCredential", "PassportCredential"], "credentialSubject": claims},
        ]
    }


def unsigned_jwt(payload):
    def part(data):
        return base64.urlsafe_b64encode(json.dumps(data).encode()).rstrip(b"=").decode()
    return f"{part({'alg': 'none'})}.{part(payload)}.sig"


@pytest.fixture
def sessions():
    return webauth.AuthSessions()


@pytest.fixture
def service_key():
    return oidc4vc.generate_signing_key("Ed25519")


@pytest.fixture
def pending(http, mode, sessions):
    http.add("POST", VERIFY_URL, text=VP_REQUEST)
    return webauth.start_auth_session(http, mode, sessions, "demo-website.com", "https://demo-website.com/login?x=1")


class TestStart:
    def test_mdl_presentation_request(self, http, mode, sessions, pending):
        body = http.calls[0]["json"]
        assert body["request_credentials"] == [{"format": "mso_mdoc", "doctype": issuer.MDL_DOCTYPE}]
        assert body["purpose"] == webauth.AUTH_PURPOSE
        assert body["challenge"]

        session = sessions.get(pending["sessionId"])
        assert session["status"] == webauth.PENDING
        assert session["challenge"] == body["challenge"]
        assert session["verificationSessionId"] == "vs-1"
        assert pending["qrCode"] == VP_REQUEST
        assert pending["callbackUrl"] == f"{mode.server}auth/callback/{pending['sessionId']}"

    def test_verifier_down(self, http, mode, sessions):
        http.add("POST", VERIFY_URL, status=503, text="unavailable")
        with pytest.raises(VerificationError):
            webauth.start_auth_session(http, mode, sessions, "site", "https://site/cb")
        assert len(sessions) == 0


class TestPresent:
    def test_json_presentation(self, mode, sessions, service_key, pending):
        result = webauth.present(mode, sessions, service_key, pending["sessionId"], json.dumps(passport_vp()))

        assert result["success"] is True
        assert result["userInfo"]["webId"] == "alice@example.com"
        assert result["userInfo"]["fullName"] == "Alice Doe"
        _, claims = oidc4vc.verify_jwt(result["authToken"], service_key.public_jwk())
        assert claims["sub"] == "alice@example.com"
        assert claims["exp"] - claims["iat"] == 24 * 3600
        assert sessions.get(pending["sessionId"])["status"] == webauth.COMPLETED

    def test_jwt_presentation_with_vp_claim(self, mode, sessions, service_key, pending):
        vp_token = unsigned_jwt({"vp": passport_vp()})
        result = webauth.present(mode, sessions, service_key, pending["sessionId"], vp_token)
        assert result["userInfo"]["passportNumber"] == "X1234567"

    def test_missing_claim_fails_session(self, mode, sessions, service_key, pending):
        with pytest.raises(AuthenticationError, match="Missing required claims"):
            webauth.present(mode, sessions, service_key, pending["sessionId"], passport_vp(webId=None))
        session = sessions.get(pending["sessionId"])
        assert session["status"] == webauth.FAILED
        assert session["error"] == "Missing required claims"

    def test_no_passport_credential(self, mode, sessions, service_key, pending):
        vp = {"verifiableCredential": [{"type": ["VerifiableCredential", "UniversityDegree"]}]}
        with pytest.raises(AuthenticationError, match="No passport credential"):
            webauth.present(mode, sessions, service_key, pending["sessionId"], vp)

    def test_undecodable_token(self, mode, sessions, service_key, pending):
        with pytest.raises(AuthenticationError, match="decode"):
            webauth.present(mode, sessions, service_key, pending["sessionId"], "not json")

    def test_session_processed_once(self, mode, sessions, service_key, pending):
        webauth.present(mode, sessions, service_key, pending["sessionId"], passport_vp())
        with pytest.raises(AuthenticationError, match="already processed"):
            webauth.present(mode, sessions, service_key, pending["sessionId"], passport_vp())

    def test_unknown_session(self, mode, sessions, service_key):
        with pytest.raises(AuthenticationError) as exc:
            webauth.present(mode, sessions, service_key, "nope", passport_vp())
        assert exc.value.status_code == 404


def test_return_redirect_keeps_site_query():
    session = {
        "returnUrl": "https://demo-website.com/login?x=1",
        "authToken": "tok",
        "userInfo": {"webId": "alice@example.com"},
    }
    url = urlparse(webauth.return_redirect(session))
    assert url.netloc == "demo-website.com"
    assert parse_qs(url.query) == {"x": ["1"], "auth_token": ["tok"], "web_id": ["alice@example.com"]}
