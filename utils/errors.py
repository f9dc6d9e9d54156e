import json
from typing import Any, Dict, Optional

import requests


class DemoError(Exception):
    """
    Base error for the issue / verify flow.
    Carries the HTTP status and body when the failure comes from a call
    to the issuer or verifier, and the flow step that raised it.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Any = None,
        step: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body
        self.step = step

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.message} (HTTP {self.status_code})"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "error_description": self.message,
            "step": self.step,
            "status": self.status_code,
            "body": self.body,
        }

    @classmethod
    def from_response(cls, message: str, resp: requests.Response) -> "DemoError":
        try:
            body = resp.json()
        except ValueError:
            body = resp.text
        return cls(message, status_code=resp.status_code, body=body)


class DiscoveryError(DemoError):
    """Issuer metadata unreachable or malformed."""


class IssuanceRequestError(DemoError):
    """Issuer rejected the issuance payload."""


class OfferResolutionError(DemoError):
    """Offer reference has no usable form or its URI could not be fetched."""


class TokenExchangeError(DemoError):
    """No pre-authorized code in the offer, or the token endpoint refused it."""


class ProofConstructionError(DemoError):
    """Signing the proof of possession failed."""


class CredentialFetchError(DemoError):
    """Credential endpoint rejected the request."""


class VerificationError(DemoError):
    """Verifier refused to open a session."""


class OnboardingError(DemoError):
    """IACA or document signer onboarding failed."""


class AuthenticationError(DemoError):
    """Presented passport credential missing, malformed or lacking required claims."""


def describe(error: DemoError) -> str:
    lines = [f"{type(error).__name__}: {error.message}"]
    if error.step:
        lines.append(f"step: {error.step}")
    if error.status_code is not None:
        lines.append(f"HTTP status: {error.status_code}")
    if error.body not in (None, ""):
        body = error.body
        if not isinstance(body, str):
            body = json.dumps(body, indent=2, ensure_ascii=False)
        lines.append(f"body: {body}")
    return "\n".join(lines)