# tools/verifier.py
# Opening a presentation session on the walt.id verifier.
from typing import Any, Dict, Optional, Union
import json
import logging
import requests
from urllib.parse import parse_qs, urlparse

from utils.errors import VerificationError


def build_presentation_request(credential_type: Optional[str], fmt: str = "jwt_vc_json", doctype: Optional[str] = None,
                               purpose: Optional[str] = None, challenge: Optional[str] = None) -> Dict[str, Any]:
    descriptor: Dict[str, Any] = {"format": fmt}
    if doctype:
        descriptor["doctype"] = doctype
    else:
        descriptor["type"] = credential_type
    request: Dict[str, Any] = {"request_credentials": [descriptor]}
    if purpose:
        request["purpose"] = purpose
    if challenge:
        request["challenge"] = challenge
    return request


def start_verification(http, mode, credential_type, fmt="jwt_vc_json", doctype=None, purpose=None, challenge=None) -> Union[str, Dict[str, Any]]:
    """
    Open a verification session. The answer is an openid4vp:// authorization
    request URL (or a JSON session object) to hand over to a wallet.
    Building and posting the verifiable presentation is not done here.
    """
    url = f"{mode.verifier_base}/openid4vc/verify"
    body = build_presentation_request(credential_type, fmt=fmt, doctype=doctype, purpose=purpose, challenge=challenge)
    try:
        r = http.post(url, json=body, headers={"Accept": "application/json, text/plain"}, timeout=mode.timeout)
    except requests.RequestException as e:
        raise VerificationError(f"Network error calling verifier: {e}") from e
    if r.status_code >= 400:
        raise VerificationError.from_response(f"Verifier API error {r.status_code}", r)

    text = r.text.strip()
    try:
        session = json.loads(text)
    except ValueError:
        session = text
    logging.info("verification session = %s", session)
    return session


def session_url(session) -> Optional[str]:
    if isinstance(session, str):
        return session or None
    if isinstance(session, dict):
        return session.get("url") or session.get("request_uri") or session.get("authorization_request")
    return None


def session_id(session) -> Optional[str]:
    """Verifier session id, from the JSON object or the `state` of the request URL."""
    if isinstance(session, dict):
        return session.get("sessionId") or session.get("id") or session.get("state")
    if isinstance(session, str):
        return (parse_qs(urlparse(session).query).get("state") or [None])[0]
    return None
