# tools/webauth.py
# Website login with a passport credential: the site opens an auth session,
# the wallet presents the credential, the user is sent back to the site
# with a signed auth token and the web ID carried by the credential.
import json
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from tools import issuer, verifier
from utils import oidc4vc
from utils.errors import AuthenticationError

PASSPORT_CREDENTIAL_TYPE = "PassportCredential"
AUTH_PURPOSE = "Web Authentication"
AUTH_METHOD = "passport_vc"
AUTH_TOKEN_LIFE = timedelta(hours=24)

PENDING = "pending"
COMPLETED = "completed"
FAILED = "failed"


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


class AuthSessions:
    """In-memory auth sessions of one server process, keyed by session id."""

    def __init__(self):
        self._sessions: Dict[str, Dict[str, Any]] = {}

    def add(self, session: Dict[str, Any]) -> None:
        self._sessions[session["id"]] = session

    def get(self, session_id: str) -> Optional[Dict[str, Any]]:
        return self._sessions.get(session_id)

    def __len__(self):
        return len(self._sessions)


def callback_url(mode, session_id: str) -> str:
    return f"{mode.server}auth/callback/{session_id}"


def start_auth_session(http, mode, sessions: AuthSessions, website: Optional[str], return_url: str) -> Dict[str, Any]:
    """Open a mDL presentation session on the verifier and record a pending auth session."""
    challenge = str(uuid.uuid4())
    verification = verifier.start_verification(
        http,
        mode,
        None,
        fmt="mso_mdoc",
        doctype=issuer.MDL_DOCTYPE,
        purpose=AUTH_PURPOSE,
        challenge=challenge,
    )
    session = {
        "id": str(uuid.uuid4()),
        "website": website,
        "returnUrl": return_url,
        "status": PENDING,
        "createdAt": _now().isoformat(),
        "challenge": challenge,
        "verificationSessionId": verifier.session_id(verification),
        "presentationRequest": verification,
        "authToken": None,
        "userInfo": None,
    }
    sessions.add(session)
    logging.info("auth session %s started for %s", session["id"], website)
    return {
        "sessionId": session["id"],
        "presentationRequest": verification,
        "callbackUrl": callback_url(mode, session["id"]),
        "qrCode": verifier.session_url(verification),
    }


def decode_presentation(vp_token) -> Dict[str, Any]:
    """VP as a dict, from a JWT (payload or its `vp` claim), a JSON string or a dict."""
    if isinstance(vp_token, dict):
        return vp_token
    if not isinstance(vp_token, str) or not vp_token:
        raise AuthenticationError("vpToken is missing")
    try:
        if oidc4vc.looks_like_jwt(vp_token):
            payload = oidc4vc.get_payload_from_token(vp_token)
            vp = payload.get("vp", payload)
        else:
            vp = json.loads(vp_token)
    except ValueError as e:
        raise AuthenticationError("Failed to decode VP token") from e
    if not isinstance(vp, dict):
        raise AuthenticationError("Invalid VP structure", body=vp)
    return vp


def passport_credential(vp: Dict[str, Any]) -> Dict[str, Any]:
    """The passport credential of the VP, with the web ID and passport number claims checked."""
    credentials = vp.get("verifiableCredential")
    if not isinstance(credentials, list) or not credentials:
        raise AuthenticationError("Invalid VP structure")
    for credential in credentials:
        if isinstance(credential, str) and oidc4vc.looks_like_jwt(credential):
            try:
                credential = oidc4vc.get_payload_from_token(credential).get("vc", {})
            except ValueError:
                logging.warning("credential in VP is not a decodable JWT")
                continue
        if isinstance(credential, dict) and PASSPORT_CREDENTIAL_TYPE in (credential.get("type") or []):
            break
    else:
        raise AuthenticationError("No passport credential found")
    subject = credential.get("credentialSubject") or {}
    if not subject.get("webId") or not subject.get("passportNumber"):
        raise AuthenticationError("Missing required claims")
    return credential


def user_info(credential: Dict[str, Any]) -> Dict[str, Any]:
    subject = credential["credentialSubject"]
    return {
        "webId": subject["webId"],
        "fullName": f"{subject.get('givenName', '')} {subject.get('familyName', '')}".strip(),
        "nationality": subject.get("nationality"),
        "passportNumber": subject["passportNumber"],
        "nfcVerified": subject.get("nfcVerified"),
        "verificationLevel": subject.get("verificationLevel"),
        "authenticationMethod": AUTH_METHOD,
    }


def issue_auth_token(service_key: oidc4vc.SigningKey, info: Dict[str, Any], now: Optional[datetime] = None) -> str:
    now = now or _now()
    claims = {
        "sub": info["webId"],
        "name": info["fullName"],
        "auth_method": AUTH_METHOD,
        "iat": int(now.timestamp()),
        "exp": int((now + AUTH_TOKEN_LIFE).timestamp()),
        "jti": str(uuid.uuid4()),
    }
    header = {"typ": "JWT", "kid": service_key.kid}
    return oidc4vc.sign_jwt(service_key, header=header, payload=claims)


def present(mode, sessions: AuthSessions, service_key: oidc4vc.SigningKey, session_id: str, vp_token) -> Dict[str, Any]:
    """
    Accept the presentation of a pending session. Only the VP structure and
    the passport claims are checked, the cryptographic verification of the
    presentation stays with the walt.id verifier.
    """
    session = sessions.get(session_id)
    if not session:
        raise AuthenticationError("Session not found", status_code=404)
    if session["status"] != PENDING:
        raise AuthenticationError("Session already processed")

    try:
        credential = passport_credential(decode_presentation(vp_token))
    except AuthenticationError as e:
        session["status"] = FAILED
        session["error"] = e.message
        logging.warning("auth session %s failed: %s", session_id, e.message)
        raise AuthenticationError(f"VP verification failed: {e.message}", body=e.body) from e

    info = user_info(credential)
    session["status"] = COMPLETED
    session["authToken"] = issue_auth_token(service_key, info)
    session["userInfo"] = info
    session["completedAt"] = _now().isoformat()
    logging.info("authentication successful for web ID %s", info["webId"])
    return {
        "success": True,
        "authToken": session["authToken"],
        "userInfo": info,
        "callbackUrl": callback_url(mode, session_id),
    }


def return_redirect(session: Dict[str, Any]) -> str:
    """returnUrl of the site with auth_token and web_id added to its query."""
    parts = urlparse(session["returnUrl"])
    query = parse_qsl(parts.query, keep_blank_values=True)
    query += [("auth_token", session["authToken"]), ("web_id", session["userInfo"]["webId"])]
    return urlunparse(parts._replace(query=urlencode(query)))
