# tools/health.py
# Reachability of the issuer and verifier services.
import logging
from typing import Any, Dict

import requests


def _probe(http, url, timeout) -> Dict[str, Any]:
    try:
        resp = http.get(url, timeout=timeout)
    except requests.RequestException as e:
        logging.warning("%s is not responding: %s", url, str(e))
        return {"url": url, "ok": False, "status": None, "error": str(e)}
    return {"url": url, "ok": resp.status_code < 400, "status": resp.status_code}


def check_services(http, mode) -> Dict[str, Dict[str, Any]]:
    targets = {
        "issuer": f"{mode.issuer_base}/health",
        "verifier": f"{mode.verifier_base}/health",
        "issuer_metadata": f"{mode.issuer_url}/.well-known/openid-credential-issuer",
        "verifier_configuration": f"{mode.verifier_base}/.well-known/openid-configuration",
    }
    return {name: _probe(http, url, mode.timeout) for name, url in targets.items()}
