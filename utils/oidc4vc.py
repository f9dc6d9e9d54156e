from jwcrypto import jwk, jwt, jws
from jwcrypto.common import JWException
from cryptography import x509
import json
import base64
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional


# (kty, crv) -> JOSE alg, RFC 7518 and RFC 8037
KEY_ALGS = {
    ("OKP", "Ed25519"): "EdDSA",
    ("EC", "P-256"): "ES256",
    ("EC", "P-384"): "ES384",
    ("EC", "P-521"): "ES512",
    ("EC", "secp256k1"): "ES256K",
    ("EC", "P-256K"): "ES256K",
}


@dataclass(frozen=True)
class SigningKey:
    """
    In-memory key pair of one role (issuer or holder) for a single run.
    `jwk` is the private JWK, `kid` a fresh identifier, `alg` the JOSE alg.
    """
    jwk: Dict[str, Any]
    kid: str
    alg: str

    def public_jwk(self) -> Dict[str, Any]:
        return pub_key(self.jwk)


def generate_key(curve):
    """
alg value https://www.rfc-editor.org/rfc/rfc7518#page-6
and https://www.rfc-editor.org/rfc/rfc8037 for OKP keys

+--------------+-------------------------------+--------------------+
| "alg" Param  | Digital Signature or MAC      | Implementation     |
| Value        | Algorithm                     | Requirements       |
+--------------+-------------------------------+--------------------+
| EdDSA        | Ed25519                       | walt.id default    |
| ES256        | ECDSA using P-256 and SHA-256 | Recommended+       |
| ES384        | ECDSA using P-384 and SHA-384 | Optional           |
| ES512        | ECDSA using P-521 and SHA-512 | Optional           |
| ES256K       | ECDSA using secp256k1         | Optional           |
+--------------+-------------------------------+--------------------+
    """

    if curve == 'Ed25519':
        key = jwk.JWK.generate(kty='OKP', crv=curve)
    elif curve in ['P-256', 'P-384', 'P-521', 'secp256k1']:
        key = jwk.JWK.generate(kty='EC', crv=curve)
    else:
        raise ValueError("Curve not supported: " + str(curve))
    return json.loads(key.export(private_key=True))


def generate_signing_key(curve='Ed25519') -> SigningKey:
    """Fresh key pair with a random kid. kids are never reused across runs."""
    key = generate_key(curve)
    kid = str(uuid.uuid4())
    key_alg = alg(key)
    key["kid"] = kid
    key["alg"] = key_alg
    logging.info("new %s key generated, kid = %s", curve, kid)
    return SigningKey(jwk=key, kid=kid, alg=key_alg)


def alg(key: dict) -> str:
    """JOSE 'alg' of a JWK dict, from its kty and curve."""
    kty, crv = key.get("kty"), key.get("crv")
    if kty not in ("EC", "OKP"):
        raise ValueError(f"Unsupported JWK kty: {kty}")
    try:
        return KEY_ALGS[(kty, crv)]
    except KeyError:
        raise ValueError(f"Unsupported {kty} curve: {crv}")


def pub_key(key):
    key = json.loads(key) if isinstance(key, str) else key
    Key = jwk.JWK(**key)
    return json.loads(Key.export_public())


def thumbprint(key):
    key_obj = json.loads(key) if isinstance(key, str) else dict(key)
    if key_obj.get('crv') == 'P-256K':
        key_obj['crv'] = 'secp256k1'
    signer_key = jwk.JWK(**key_obj)
    return signer_key.thumbprint()


def sign_jwt(key, header: dict, payload: dict) -> str:
    """
    Sign a compact JWT with a private JWK (dict or SigningKey).
    alg is filled from the key when the header does not carry one.
    """
    if isinstance(key, SigningKey):
        key = key.jwk
    header = dict(header)
    header.setdefault("alg", alg(key))
    signer_key = jwk.JWK(**key)
    token = jwt.JWT(header=header, claims=payload)
    token.make_signed_token(signer_key)
    return token.serialize()


def verify_jwt(token: str, public_jwk: dict):
    """Check the signature of a compact JWS and return (header, payload)."""
    key = jwk.JWK(**public_jwk)
    jws_token = jws.JWS()
    try:
        jws_token.deserialize(token)
        jws_token.verify(key)
    except JWException as e:
        raise ValueError(f"JWT signature validation failed: {e}") from e
    header = jws_token.jose_header
    payload = json.loads(jws_token.payload.decode("utf-8"))
    return header, payload


def get_payload_from_token(token) -> dict:
    if not token:
        return {}
    payload = token.split('.')[1]
    payload += "=" * ((4 - len(payload) % 4) % 4)  # solve the padding issue of the base64 python lib
    try:
        return json.loads(base64.urlsafe_b64decode(payload).decode())
    except Exception as e:
        raise ValueError(f"Invalid token payload: {e}")


def get_header_from_token(token) -> dict:
    if not token:
        return {}
    header = token.split('.')[0]
    header += "=" * ((4 - len(header) % 4) % 4)  # solve the padding issue of the base64 python lib
    try:
        return json.loads(base64.urlsafe_b64decode(header).decode())
    except Exception as e:
        raise ValueError(f"Invalid token header: {e}")


def looks_like_jwt(value: Optional[str]) -> bool:
    return isinstance(value, str) and value.count('.') == 2 and value.startswith("eyJ")


def certificate_summary(pem: str) -> dict:
    """Subject, issuer and validity of a PEM certificate (document signer, IACA)."""
    try:
        cert = x509.load_pem_x509_certificate(pem.encode())
    except Exception as e:
        raise ValueError(f"Invalid PEM certificate: {e}")
    return {
        "subject": cert.subject.rfc4514_string(),
        "issuer": cert.issuer.rfc4514_string(),
        "not_before": cert.not_valid_before_utc.isoformat(),
        "not_after": cert.not_valid_after_utc.isoformat(),
        "serial_number": format(cert.serial_number, "x"),
    }
