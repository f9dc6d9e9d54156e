#!/usr/bin/env python3
"""
mDoc PKI setup.

Onboards an IACA (Issuing Authority Certification Authority) and a Document
Signer on the walt.id issuer (ISO 18013-5), then saves keys and certificate
chain to PKI_FILE (default mdoc-pki-setup.json) for mdoc_issuer.py --use-pki.
"""
import argparse
import logging
import os
import sys

import requests

import env
from tools import issuer
from tools.mdoc import save_json_file
from utils.errors import DemoError, describe


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create IACA and Document Signer certificates for mDoc issuance")
    parser.add_argument("--output", help="where to save the PKI setup (default: PKI_FILE)")
    args = parser.parse_args(argv)

    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
    mode = env.currentMode()
    output = args.output or mode.pki_file

    with requests.Session() as http:
        try:
            pki = issuer.setup_pki(http, mode)
        except DemoError as e:
            print("PKI setup failed")
            print(describe(e))
            return 1

    save_json_file(output, pki)
    print(f"PKI setup saved to: {output}")
    print("Next step: python mdoc_issuer.py --web-id you@example.com --passport-data passport.json --use-pki")
    return 0


if __name__ == "__main__":
    sys.exit(main())
