#!/usr/bin/env python3
"""
Passport mDoc credential offer generator.

Issues an ISO 18013-5 mDL credential offer from passport data read by an
NFC reader (JSON file with a `data` dict per namespace), prints a QR code for
wallet scanning and saves the offer to OFFER_FILE for the QR test server.
"""
import argparse
import logging
import os
import sys

import requests

import env
from tools.mdoc import generate_mdoc_offer, load_json_file, load_pki_setup, save_json_file
from utils.errors import DemoError, describe
from utils.qr import print_terminal_qr


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Generate an OID4VCI credential offer for a passport mDoc")
    parser.add_argument("--web-id", required=True, help="web ID added to the credential for authentication")
    parser.add_argument("--passport-data", required=True, help="JSON file produced by the passport reader")
    parser.add_argument("--use-pki", action="store_true", help="sign with the Document Signer from setup_pki.py")
    args = parser.parse_args(argv)

    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
    mode = env.currentMode()

    try:
        passport = load_json_file(args.passport_data)
        pki = load_pki_setup(mode.pki_file) if args.use_pki else None
    except (OSError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    with requests.Session() as http:
        try:
            result = generate_mdoc_offer(http, mode, passport, args.web_id, pki=pki)
        except DemoError as e:
            print("Credential offer generation failed")
            print(describe(e))
            return 1
        except ValueError as e:
            print(f"Error: {e}")
            return 1

    offer_url = result["credentialOffer"]["url"]
    print("\nQR Code for Wallet Scanning:")
    print_terminal_qr(offer_url)
    print(f"\nCredential Offer URL:\n{offer_url}")
    metadata = result["metadata"]
    print(f"\nDocument Type: {metadata['doctype']}")
    print(f"Passport Number: {metadata['passportNumber']}")
    print(f"Web ID: {metadata['webId']}")
    print(f"Issuer: {metadata['issuer']}")

    save_json_file(mode.offer_file, result)
    print(f"\nSaved to: {mode.offer_file}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
