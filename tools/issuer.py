# tools/issuer.py
# Calls to the walt.id issuer: metadata discovery, issuance requests
# (jwt_vc_json and mso_mdoc) and ISO mDL PKI onboarding.
import json
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Optional, Tuple, Union

import requests

from utils import oidc4vc
from utils.errors import DiscoveryError, IssuanceRequestError, OnboardingError

JWT_VC_FORMATS = ("jwt_vc_json", "jwt_vc")
MDL_DOCTYPE = "org.iso.18013.5.1.mDL"
MDL_NAMESPACE = "org.iso.18013.5.1"
WEBAUTH_NAMESPACE = "com.yourcompany.webauth"
CREDENTIAL_LIFE = timedelta(days=365)


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def _offer_reference(resp: requests.Response) -> Union[str, Dict[str, Any]]:
    """The issuer answers with the offer URL as plain text, sometimes JSON encoded."""
    text = resp.text.strip()
    if text.startswith("{") or text.startswith('"'):
        try:
            return json.loads(text)
        except ValueError:
            pass
    return text


# --------- Discovery ---------
def discover_issuer_configs(http, mode) -> Dict[str, Any]:
    url = f"{mode.issuer_url}/.well-known/openid-credential-issuer"
    logging.info("fetching issuer metadata at %s", url)
    try:
        resp = http.get(url, timeout=mode.timeout)
    except requests.RequestException as e:
        raise DiscoveryError(f"issuer metadata endpoint not available: {e}") from e
    if resp.status_code >= 400:
        raise DiscoveryError.from_response("issuer metadata request rejected", resp)
    try:
        metadata = resp.json()
    except ValueError as e:
        raise DiscoveryError("issuer metadata is not JSON", status_code=resp.status_code, body=resp.text) from e
    if not isinstance(metadata, dict):
        raise DiscoveryError("issuer metadata is not a JSON object", status_code=resp.status_code, body=metadata)
    return metadata


def select_configuration(configurations: Dict[str, Any], formats: Iterable[str] = JWT_VC_FORMATS) -> Tuple[str, Dict[str, Any]]:
    """First configuration whose format is wanted, else the first one overall."""
    if not configurations:
        raise DiscoveryError("No credential configurations discovered")
    formats = tuple(formats)
    for configuration_id, descriptor in configurations.items():
        if isinstance(descriptor, dict) and descriptor.get("format") in formats:
            return configuration_id, descriptor
    configuration_id = next(iter(configurations))
    logging.warning("no configuration with format %s, falling back to %s", formats, configuration_id)
    descriptor = configurations[configuration_id]
    return configuration_id, descriptor if isinstance(descriptor, dict) else {}


def credential_type(descriptor: Dict[str, Any], default: str = "VerifiableId") -> str:
    types = descriptor.get("types")
    if isinstance(types, list) and types:
        return types[0]
    if isinstance(types, str) and types:
        return types
    # draft 13 metadata nests the type array in credential_definition
    definition_types = (descriptor.get("credential_definition") or {}).get("type") or []
    if definition_types:
        return definition_types[-1]
    return default


# --------- jwt_vc_json issuance ---------
def build_credential_data(credential_type: str, subject: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    credential_subject = {
        "id": "did:example:holder123",
        "givenName": "Alice",
        "familyName": "Doe",
    }
    if subject:
        credential_subject.update(subject)
    return {
        "@context": ["https://www.w3.org/2018/credentials/v1"],
        "type": ["VerifiableCredential", credential_type],
        "issuer": {"name": "Test Issuer"},
        "credentialSubject": credential_subject,
    }


def build_issuance_request(issuer_key: oidc4vc.SigningKey, configuration_id: str, credential_type: str,
                           subject: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    now = _now()
    return {
        "credentialConfigurationId": configuration_id,
        "issuerKey": {"type": "jwk", "jwk": issuer_key.jwk},
        "authenticationMethod": "PRE_AUTHORIZED",
        "credentialData": build_credential_data(credential_type, subject),
        "mapping": {
            "id": str(uuid.uuid4()),
            "issuer": {"id": "did:key:issuer-did-placeholder"},
            "credentialSubject": {"id": "did:key:holder-did-placeholder"},
            "issuanceDate": now.isoformat(),
            "expirationDate": (now + CREDENTIAL_LIFE).isoformat(),
        },
        "standardVersion": "DRAFT13",
    }


def start_issuance(http, mode, issuer_key, configuration_id, credential_type, subject=None):
    url = f"{mode.issuer_base}/openid4vc/jwt/issue"
    issuance_request = build_issuance_request(issuer_key, configuration_id, credential_type, subject)
    logging.info("posting issuance request for %s to %s", configuration_id, url)
    try:
        resp = http.post(url, json=issuance_request, timeout=mode.timeout)
    except requests.RequestException as e:
        raise IssuanceRequestError(f"issuance endpoint not available: {e}") from e
    if resp.status_code >= 400:
        raise IssuanceRequestError.from_response("issuance request rejected", resp)
    offer_reference = _offer_reference(resp)
    if not offer_reference:
        raise IssuanceRequestError("issuer returned an empty offer", status_code=resp.status_code, body=resp.text)
    return offer_reference


# --------- mso_mdoc issuance ---------
def build_mdoc_data(passport: Dict[str, Any], web_id: Optional[str]) -> Dict[str, Any]:
    """Namespaces of the mDoc. `passport` is the reader output with a `data` dict per namespace."""
    data = passport.get("data") or {}
    if MDL_NAMESPACE not in data:
        raise ValueError(f"passport data has no {MDL_NAMESPACE} namespace")
    webauth = dict(data.get(WEBAUTH_NAMESPACE) or {})
    webauth["web_id"] = web_id
    return {
        MDL_NAMESPACE: data[MDL_NAMESPACE],
        WEBAUTH_NAMESPACE: webauth,
    }


def start_mdoc_issuance(http, mode, issuer_key_jwk, x5_chain, mdoc_data):
    url = f"{mode.issuer_base}/openid4vc/mdoc/issue"
    issuance_request = {
        "issuerKey": {"type": "jwk", "jwk": issuer_key_jwk},
        "credentialConfigurationId": MDL_DOCTYPE,
        "mdocData": mdoc_data,
        # document signer certificate, mandatory for a verifiable mDoc
        "x5Chain": x5_chain or [],
    }
    logging.info("posting mDoc issuance request to %s", url)
    try:
        resp = http.post(url, json=issuance_request, headers={"sessionTtl": "300"}, timeout=mode.timeout)
    except requests.RequestException as e:
        raise IssuanceRequestError(f"mdoc issuance endpoint not available: {e}") from e
    if resp.status_code >= 400:
        raise IssuanceRequestError.from_response("mdoc issuance request rejected", resp)
    return _offer_reference(resp)


# --------- ISO mDL PKI onboarding ---------
def _onboard(http, mode, path, body, what):
    url = f"{mode.issuer_base}{path}"
    try:
        resp = http.post(url, json=body, timeout=mode.timeout)
    except requests.RequestException as e:
        raise OnboardingError(f"{what} onboarding endpoint not available: {e}") from e
    if resp.status_code >= 400:
        raise OnboardingError.from_response(f"{what} onboarding failed", resp)
    try:
        data = resp.json()
    except ValueError as e:
        raise OnboardingError(f"{what} onboarding response is not JSON", status_code=resp.status_code, body=resp.text) from e
    if not isinstance(data, dict):
        raise OnboardingError(f"{what} onboarding response is not a JSON object", status_code=resp.status_code, body=data)
    return data


def onboard_iaca(http, mode, country="US", common_name="Passport IACA Test",
                 issuer_uri="https://passport-issuer.example.com"):
    body = {
        "certificateData": {
            "country": country,
            "commonName": common_name,
            "issuerAlternativeNameConf": {"uri": issuer_uri},
        }
    }
    data = _onboard(http, mode, "/onboard/iso-mdl/iacas", body, "IACA")
    logging.info("IACA onboarded, kid = %s", (data.get("iacaKey") or {}).get("jwk", {}).get("kid"))
    return data


def onboard_document_signer(http, mode, iaca, country="US", common_name="Passport Document Signer Test",
                            crl_uri="https://passport-issuer.example.com/crl"):
    body = {
        "iacaSigner": {
            "iacaKey": iaca.get("iacaKey"),
            "certificateData": iaca.get("certificateData"),
        },
        "certificateData": {
            "country": country,
            "commonName": common_name,
            "crlDistributionPointUri": crl_uri,
        },
    }
    data = _onboard(http, mode, "/onboard/iso-mdl/document-signers", body, "Document signer")
    logging.info("Document signer onboarded, kid = %s", (data.get("documentSignerKey") or {}).get("jwk", {}).get("kid"))
    return data


def setup_pki(http, mode) -> Dict[str, Any]:
    iaca = onboard_iaca(http, mode)
    document_signer = onboard_document_signer(http, mode, iaca)
    if not document_signer.get("certificatePEM"):
        raise OnboardingError("document signer certificate missing in response", body=document_signer)
    try:
        logging.info("document signer certificate = %s", oidc4vc.certificate_summary(document_signer["certificatePEM"]))
    except ValueError as e:
        logging.warning("document signer certificate cannot be read: %s", str(e))
    return {
        "iaca": iaca,
        "documentSigner": document_signer,
        "setup": {
            "issuerKey": document_signer.get("documentSignerKey"),
            "x5Chain": [document_signer["certificatePEM"]],
            "createdAt": _now().isoformat(),
        },
    }
