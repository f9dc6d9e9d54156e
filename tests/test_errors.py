from utils.errors import (
    CredentialFetchError,
    DemoError,
    DiscoveryError,
    TokenExchangeError,
    describe,
)
from tests.conftest import FakeResponse


def test_defaults():
    err = DemoError("boom")
    assert err.message == "boom"
    assert err.status_code is None
    assert err.body is None
    assert err.step is None
    assert str(err) == "boom"


def test_from_response_with_json_body():
    err = TokenExchangeError.from_response("token request rejected", FakeResponse(400, {"error": "invalid_grant"}))
    assert isinstance(err, TokenExchangeError)
    assert err.status_code == 400
    assert err.body == {"error": "invalid_grant"}
    assert str(err) == "token request rejected (HTTP 400)"


def test_from_response_with_text_body():
    err = DiscoveryError.from_response("down", FakeResponse(503, text="Service Unavailable"))
    assert err.body == "Service Unavailable"


def test_to_dict_shape():
    err = CredentialFetchError("rejected", status_code=401, body={"error": "invalid_proof"}, step="FETCH_CREDENTIAL")
    as_dict = err.to_dict()
    assert as_dict["error"] == "CredentialFetchError"
    assert as_dict["error_description"] == "rejected"
    assert as_dict["status"] == 401
    assert as_dict["step"] == "FETCH_CREDENTIAL"


def test_describe_lists_step_status_and_body():
    err = CredentialFetchError("rejected", status_code=401, body={"error": "invalid_proof"}, step="FETCH_CREDENTIAL")
    text = describe(err)
    assert "step: FETCH_CREDENTIAL" in text
    assert "HTTP status: 401" in text
    assert "invalid_proof" in text
