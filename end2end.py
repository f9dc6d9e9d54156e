#!/usr/bin/env python3
"""
End-to-end issuance + verification test for the walt.id issuer & verifier.

Flow: discover config -> generate keys -> POST issuance -> parse offer ->
token -> (proof of possession) -> credential -> start verify session.

Focuses on the jwt_vc_json credential flow with the PRE_AUTHORIZED code grant.
Endpoints and tuning come from the environment, see env.py.

Exit code 0 when the flow reaches DONE, 1 on the first failing step.
"""
import logging
import os
import sys

import requests

import env
from tools import flow, verifier
from utils.errors import DemoError, describe
from utils.qr import print_terminal_qr


def main() -> int:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
    mode = env.currentMode()
    print("=== Starting walt.id End-to-End Test ===")
    print(f"Issuer: {mode.issuer_url}  Verifier: {mode.verifier_base}")

    with requests.Session() as http:
        try:
            result = flow.run_issue_verify(http, mode)
        except DemoError as e:
            print("\n=== ERROR ===")
            print(describe(e))
            return 1

    print("\n=== SUCCESS ===")
    print(f"Credential configuration: {result['configuration_id']} ({result['credential_type']})")
    print(f"Proof of possession attached: {result['proof_attached']}")
    if result["credential"]:
        print(f"Credential received in '{result['credential_field']}', prefix: {result['credential_prefix']}")
    else:
        print("Credential response had no recognizable credential field")

    deeplink = verifier.session_url(result["verification_session"])
    print(f"Verification session started: {deeplink or result['verification_session']}")
    if deeplink:
        print_terminal_qr(deeplink)
    print("NOTE: building and submitting the verifiable presentation is not implemented,")
    print("the session stays open for a wallet to answer it.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
