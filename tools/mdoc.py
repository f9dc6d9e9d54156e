# tools/mdoc.py
# Passport mDoc credential offers for any OID4VCI wallet.
import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from tools import issuer, wallet
from utils import oidc4vc
from utils.errors import TokenExchangeError


def load_json_file(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def save_json_file(path: str, data: Dict[str, Any]) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


def load_pki_setup(path: str) -> Dict[str, Any]:
    try:
        pki = load_json_file(path)
    except FileNotFoundError as e:
        raise FileNotFoundError(f"PKI setup not found at {path}, run setup_pki.py first") from e
    if not (pki.get("setup") or {}).get("issuerKey"):
        raise ValueError(f"{path} has no document signer key")
    return pki


def generate_mdoc_offer(http, mode, passport: Dict[str, Any], web_id: str, pki: Optional[Dict[str, Any]] = None, sleep=time.sleep) -> Dict[str, Any]:
    if pki:
        setup = pki["setup"]
        issuer_key_jwk = setup["issuerKey"].get("jwk", setup["issuerKey"])
        x5_chain = setup.get("x5Chain") or []
        logging.info("PKI loaded, using Document Signer certificate")
    else:
        # ES256 is what walt.id signs mDocs with
        issuer_key_jwk = oidc4vc.generate_signing_key("P-256").jwk
        x5_chain = []
        logging.warning("No PKI setup, issuance may fail without a document signer certificate")

    mdoc_data = issuer.build_mdoc_data(passport, web_id)
    offer_url = issuer.start_mdoc_issuance(http, mode, issuer_key_jwk, x5_chain, mdoc_data)
    offer = wallet.resolve_offer(
        http,
        offer_url,
        attempts=mode.offer_retry_attempts,
        delay=mode.offer_retry_delay,
        timeout=mode.timeout,
        sleep=sleep,
    )
    if isinstance(offer_url, dict):
        offer_url = wallet.credential_offer_url(offer)

    grant_type = None
    pin_required = False
    try:
        grant_type, grant = wallet.select_grant(offer)
        pin_required = bool(grant.get("user_pin_required") or grant.get("tx_code"))
    except TokenExchangeError as e:
        logging.warning("offer carries no usable grant: %s", e.message)
    logging.info("credential offer from %s, grant %s, pin required %s", offer.get("credential_issuer"), grant_type, pin_required)

    mdl = passport["data"][issuer.MDL_NAMESPACE]
    return {
        "credentialOffer": {
            "url": offer_url,
            "offer": offer,
            "qrCodeData": offer_url,
        },
        "metadata": {
            "webId": web_id,
            "issuanceDate": datetime.now(timezone.utc).replace(microsecond=0).isoformat(),
            "doctype": issuer.MDL_DOCTYPE,
            "passportNumber": mdl.get("document_number"),
            "issuer": offer.get("credential_issuer"),
            "grantType": grant_type,
            "userPinRequired": pin_required,
        },
    }
