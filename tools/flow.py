# tools/flow.py
# End-to-end issuance + verification against the walt.id issuer and verifier.
#
# DISCOVER -> KEYGEN -> ISSUE -> RESOLVE_OFFER -> EXCHANGE_CODE -> [PROOF ->]
# FETCH_CREDENTIAL -> START_VERIFY -> DONE
#
# Each step takes the output of the previous one, the first error aborts.
import logging
import time
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Optional

from tools import issuer, verifier, wallet
from utils import oidc4vc
from utils.errors import DemoError
from utils.log import close_run_logger, log_flow_event, open_run_logger

DISCOVER = "DISCOVER"
KEYGEN = "KEYGEN"
ISSUE = "ISSUE"
RESOLVE_OFFER = "RESOLVE_OFFER"
EXCHANGE_CODE = "EXCHANGE_CODE"
PROOF = "PROOF"
FETCH_CREDENTIAL = "FETCH_CREDENTIAL"
START_VERIFY = "START_VERIFY"
DONE = "DONE"


@contextmanager
def _step(events, run_id, name):
    logging.info("[%s] started", name)
    log_flow_event(events, run_id, name, "started")
    try:
        yield
    except DemoError as e:
        e.step = e.step or name
        log_flow_event(events, run_id, name, "failed", e.to_dict())
        raise
    log_flow_event(events, run_id, name, "ok")


def run_issue_verify(http, mode, tx_code: Optional[str] = None, run_id: Optional[str] = None, sleep=time.sleep) -> Dict[str, Any]:
    run_id = run_id or str(uuid.uuid4())
    events = open_run_logger(run_id, base_dir=mode.log_dir)
    tx_code = tx_code or mode.tx_code
    try:
        with _step(events, run_id, DISCOVER):
            metadata = issuer.discover_issuer_configs(http, mode)
            configurations = metadata.get("credential_configurations_supported") or {}
            configuration_id, descriptor = issuer.select_configuration(configurations)
            credential_type = issuer.credential_type(descriptor)
            fmt = descriptor.get("format") or "jwt_vc_json"
            logging.info("using credentialConfigurationId %s, type %s", configuration_id, credential_type)

        with _step(events, run_id, KEYGEN):
            issuer_key = oidc4vc.generate_signing_key("Ed25519")
            holder_key = oidc4vc.generate_signing_key("Ed25519")
            logging.info("holder key thumbprint = %s", oidc4vc.thumbprint(holder_key.public_jwk()))

        with _step(events, run_id, ISSUE):
            offer_reference = issuer.start_issuance(http, mode, issuer_key, configuration_id, credential_type)
            logging.info("issuance URL = %s", offer_reference)

        with _step(events, run_id, RESOLVE_OFFER):
            offer = wallet.resolve_offer(
                http,
                offer_reference,
                attempts=mode.offer_retry_attempts,
                delay=mode.offer_retry_delay,
                timeout=mode.timeout,
                sleep=sleep,
            )

        with _step(events, run_id, EXCHANGE_CODE):
            code, pin_required = wallet.extract_pre_authorized_code(offer)
            token_response = wallet.token_request(http, mode, code, tx_code=tx_code, pin_required=pin_required)
            nonce = token_response.get("c_nonce")
            logging.info("access token acquired, c_nonce %s", "present" if nonce else "not present")

        proof = None
        if nonce:
            with _step(events, run_id, PROOF):
                audience = offer.get("credential_issuer") or mode.issuer_url
                proof = wallet.build_proof_of_key_ownership(holder_key, audience, nonce)

        with _step(events, run_id, FETCH_CREDENTIAL):
            credential_response = wallet.credential_request(
                http,
                mode,
                token_response["access_token"],
                configuration_id,
                fmt=fmt,
                proof=proof,
                credential_endpoint=metadata.get("credential_endpoint"),
            )
            payload = wallet.extract_credential(credential_response)
            if payload and oidc4vc.looks_like_jwt(payload.value):
                try:
                    logging.info("credential claims = %s", list(oidc4vc.get_payload_from_token(payload.value)))
                except ValueError as e:
                    logging.warning("credential is not a decodable JWT: %s", str(e))

        with _step(events, run_id, START_VERIFY):
            session = verifier.start_verification(http, mode, credential_type, fmt=fmt)
            logging.info("Full VP submission flow not implemented, the session is left open for a wallet")

        result = {
            "run_id": run_id,
            "state": DONE,
            "configuration_id": configuration_id,
            "credential_type": credential_type,
            "proof_attached": proof is not None,
            "credential_field": payload.field if payload else None,
            "credential": payload.value if payload else None,
            "credential_prefix": payload.prefix if payload else None,
            "verification_session": session,
        }
        log_flow_event(events, run_id, DONE, "ok", {"configuration_id": configuration_id, "credential_field": result["credential_field"]})
        return result
    finally:
        close_run_logger(events)
