# tools/wallet.py
# Holder side of the OIDC4VCI pre-authorized code flow:
# offer -> grant -> token -> proof of key ownership -> credential.
import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple
from urllib.parse import parse_qs, quote, urlparse

import requests

from utils import oidc4vc
from utils.errors import (
    CredentialFetchError,
    OfferResolutionError,
    ProofConstructionError,
    TokenExchangeError,
)

PRE_AUTHORIZED_GRANT = "urn:ietf:params:oauth:grant-type:pre-authorized_code"
LEGACY_PRE_AUTHORIZED_GRANT = "pre-authorized_code"
AUTHORIZATION_CODE_GRANT = "authorization_code"
PROOF_TYP = "openid4vci-proof+jwt"
OFFER_SCHEME = "openid-credential-offer://"

# credential field names, newest first
CREDENTIAL_FIELDS = ("credential", "jwt", "vc")


@dataclass(frozen=True)
class CredentialPayload:
    field: str
    value: Any

    @property
    def prefix(self) -> str:
        text = self.value if isinstance(self.value, str) else json.dumps(self.value)
        return text[:6]


# --------- Offer ---------
def _query_params(offer_url: str) -> Dict[str, str]:
    return {k: v[0] for k, v in parse_qs(urlparse(offer_url).query).items()}


def parse_credential_offer_url(offer_url: str) -> Dict[str, Any]:
    raw = _query_params(offer_url).get("credential_offer")
    if not raw:
        raise OfferResolutionError("credential_offer not found")
    try:
        offer = json.loads(raw)
    except ValueError as e:
        raise OfferResolutionError("credential_offer is in incorrect format", body=raw) from e
    if not isinstance(offer, dict):
        raise OfferResolutionError("credential_offer is not a JSON object", body=raw)
    return offer


def credential_offer_url(offer: Dict[str, Any], scheme: str = OFFER_SCHEME) -> str:
    encoded = quote(json.dumps(offer, separators=(",", ":")), safe="")
    return f"{scheme}?credential_offer={encoded}"


def fetch_credential_offer(http, offer_uri: str, attempts: int = 5, delay: float = 0.5, timeout: float = 10, sleep=time.sleep):
    """The issuer may not have stored the offer yet right after issuance, poll a few times."""
    last_error = None
    for attempt in range(1, attempts + 1):
        try:
            resp = http.get(offer_uri, timeout=timeout)
            if resp.status_code < 400:
                return resp.json()
            last_error = OfferResolutionError.from_response("credential_offer_uri endpoint rejected the request", resp)
        except (requests.RequestException, ValueError) as e:
            last_error = OfferResolutionError(f"credential_offer_uri endpoint not available: {e}")
        logging.warning("offer fetch attempt %s/%s failed: %s", attempt, attempts, last_error)
        if attempt < attempts:
            sleep(delay)
    raise OfferResolutionError(
        f"credential offer not available after {attempts} attempts",
        status_code=last_error.status_code if last_error else None,
        body=last_error.body if last_error else None,
    )


def resolve_offer(http, offer_reference, attempts=5, delay=0.5, timeout=10, sleep=time.sleep) -> Dict[str, Any]:
    if isinstance(offer_reference, dict):
        return offer_reference
    if not isinstance(offer_reference, str) or not offer_reference:
        raise OfferResolutionError("offer reference is empty or not a string", body=offer_reference)

    params = _query_params(offer_reference)
    if params.get("credential_offer"):
        return parse_credential_offer_url(offer_reference)
    if offer_uri := params.get("credential_offer_uri"):
        offer = fetch_credential_offer(http, offer_uri, attempts=attempts, delay=delay, timeout=timeout, sleep=sleep)
        if not isinstance(offer, dict):
            raise OfferResolutionError("credential_offer_uri did not return a JSON object", body=offer)
        return offer
    raise OfferResolutionError("No credential_offer or credential_offer_uri", body=offer_reference)


# --------- Grant ---------
def select_grant(offer: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
    grants = offer.get("grants") or {}
    for grant_type in (PRE_AUTHORIZED_GRANT, LEGACY_PRE_AUTHORIZED_GRANT, AUTHORIZATION_CODE_GRANT):
        if grants.get(grant_type) is not None:
            return grant_type, grants[grant_type] or {}
    raise TokenExchangeError("OIDC4VCI grant not found in credential offer", body=offer)


def extract_pre_authorized_code(offer: Dict[str, Any]) -> Tuple[str, bool]:
    """Return (code, pin_required). Raises before any call to the token endpoint."""
    grant_type, grant = select_grant(offer)
    if grant_type == AUTHORIZATION_CODE_GRANT:
        raise TokenExchangeError("authorization_code grant needs an interactive login, this grant type is not supported here", body=offer)
    code = grant.get("pre-authorized_code") or grant.get("pre_authorized_code")
    if not code:
        logging.warning("no pre authorized code")
        raise TokenExchangeError("No pre-authorized_code", body=offer)
    pin_required = bool(grant.get("user_pin_required") or grant.get("tx_code"))
    return code, pin_required


# --------- Token ---------
def token_request(http, mode, code: str, tx_code: Optional[str] = None, pin_required: bool = False) -> Dict[str, Any]:
    token_endpoint = f"{mode.issuer_url}/token"
    data = {"grant_type": PRE_AUTHORIZED_GRANT, "pre-authorized_code": code}
    if pin_required:
        if not tx_code:
            raise TokenExchangeError("offer requires a transaction code, set TX_CODE")
        # draft 13 uses tx_code, draft 11 user_pin
        data["tx_code"] = tx_code
        data["user_pin"] = tx_code

    try:
        resp = http.post(token_endpoint, headers={'Content-Type': 'application/x-www-form-urlencoded'}, data=data, timeout=mode.timeout)
    except requests.RequestException as e:
        logging.error("Request error = %s", str(e))
        raise TokenExchangeError(f"token endpoint not available: {e}") from e
    if resp.status_code >= 400:
        raise TokenExchangeError.from_response("token request rejected", resp)
    try:
        resp_json = resp.json()
    except ValueError as e:
        raise TokenExchangeError("token response is not JSON", status_code=resp.status_code, body=resp.text) from e
    if not isinstance(resp_json, dict):
        raise TokenExchangeError("token response is not a JSON object", status_code=resp.status_code, body=resp_json)

    if "error" in resp_json:
        raise TokenExchangeError(resp_json.get("error_description", resp_json["error"]), status_code=resp.status_code, body=resp_json)
    if not resp_json.get("access_token"):
        raise TokenExchangeError("access token missing", status_code=resp.status_code, body=resp_json)
    return resp_json


# --------- Proof ---------
def build_proof_of_key_ownership(holder_key: oidc4vc.SigningKey, audience: str, nonce: str, now: Optional[int] = None) -> str:
    payload = {
        'aud': audience,  # Credential Issuer URL
        'iat': now if now is not None else int(datetime.timestamp(datetime.now())),
        'nonce': nonce,
    }
    try:
        public_jwk = holder_key.public_jwk()
        public_jwk.pop("kid", None)
        header = {
            'typ': PROOF_TYP,
            'alg': holder_key.alg,
            'jwk': public_jwk,
        }
        return oidc4vc.sign_jwt(holder_key, header=header, payload=payload)
    except Exception as e:
        logging.warning("proof of key ownership failed %s", str(e))
        raise ProofConstructionError(f"proof of key ownership failed: {e}") from e


# --------- Credential ---------
def credential_request(http, mode, access_token: str, configuration_id: str, fmt: str = "jwt_vc_json",
                       proof: Optional[str] = None, credential_endpoint: Optional[str] = None) -> Dict[str, Any]:
    credential_endpoint = credential_endpoint or f"{mode.issuer_url}/credential"
    headers = {
        'Content-Type': 'application/json',
        'Authorization': 'Bearer ' + access_token
    }
    data: Dict[str, Any] = {
        "credential_configuration_id": configuration_id,
        "format": fmt,
    }
    if proof:
        data["proof"] = {
            "proof_type": "jwt",
            "jwt": proof
        }

    try:
        resp = http.post(credential_endpoint, headers=headers, data=json.dumps(data), timeout=mode.timeout)
    except requests.RequestException as e:
        logging.warning("credential request failure = %s", str(e))
        raise CredentialFetchError(f"credential endpoint not available: {e}") from e
    if resp.status_code >= 400:
        raise CredentialFetchError.from_response("credential request rejected", resp)
    try:
        resp_json = resp.json()
    except ValueError as e:
        raise CredentialFetchError("credential response is not JSON", status_code=resp.status_code, body=resp.text) from e
    logging.info("credential endpoint response keys = %s", list(resp_json) if isinstance(resp_json, dict) else type(resp_json).__name__)
    return resp_json


def extract_credential(result) -> Optional[CredentialPayload]:
    if isinstance(result, dict):
        for field in CREDENTIAL_FIELDS:
            if result.get(field):
                return CredentialPayload(field, result[field])
        # batch shape of OID4VCI 1.0
        credentials = result.get("credentials")
        if isinstance(credentials, list) and credentials:
            first = credentials[0]
            value = first.get("credential") if isinstance(first, dict) else first
            if value:
                return CredentialPayload("credentials", value)
    logging.warning("unrecognized credential response shape: %s", result)
    return None
