import pytest

from tools import verifier
from utils.errors import VerificationError

VERIFY_URL = "http://verifier.test/openid4vc/verify"


def test_presentation_request_for_jwt_vc():
    assert verifier.build_presentation_request("UniversityDegree") == {
        "request_credentials": [{"format": "jwt_vc_json", "type": "UniversityDegree"}]
    }


def test_presentation_request_for_mdoc():
    request = verifier.build_presentation_request(None, fmt="mso_mdoc", doctype="org.iso.18013.5.1.mDL")
    assert request["request_credentials"] == [{"format": "mso_mdoc", "doctype": "org.iso.18013.5.1.mDL"}]


def test_session_as_text(http, mode):
    http.add("POST", VERIFY_URL, text="openid4vp://authorize?state=s1\n")
    session = verifier.start_verification(http, mode, "UniversityDegree")
    assert session == "openid4vp://authorize?state=s1"
    assert http.calls[0]["json"]["request_credentials"][0]["type"] == "UniversityDegree"


def test_session_as_json(http, mode):
    http.add("POST", VERIFY_URL, json={"request_uri": "http://verifier.test/request/1"})
    session = verifier.start_verification(http, mode, "UniversityDegree")
    assert verifier.session_url(session) == "http://verifier.test/request/1"


def test_rejected(http, mode):
    http.add("POST", VERIFY_URL, status=400, json={"message": "bad request"})
    with pytest.raises(VerificationError) as exc:
        verifier.start_verification(http, mode, "UniversityDegree")
    assert exc.value.status_code == 400
    assert exc.value.body == {"message": "bad request"}


def test_unreachable(http, mode, connection_error):
    http.add_exception("POST", VERIFY_URL, connection_error)
    with pytest.raises(VerificationError):
        verifier.start_verification(http, mode, "UniversityDegree")


@pytest.mark.parametrize("session, expected", [
    ("", None),
    ({}, None),
    ({"url": "openid4vp://x"}, "openid4vp://x"),
    (42, None),
])
def test_session_url(session, expected):
    assert verifier.session_url(session) == expected


def test_presentation_request_purpose_and_challenge():
    request = verifier.build_presentation_request(None, fmt="mso_mdoc", doctype="org.iso.18013.5.1.mDL",
                                                  purpose="Web Authentication", challenge="c1")
    assert request["purpose"] == "Web Authentication"
    assert request["challenge"] == "c1"


@pytest.mark.parametrize("session, expected", [
    ({"sessionId": "s1"}, "s1"),
    ("openid4vp://authorize?state=s2&request_uri=x", "s2"),
    ("openid4vp://authorize", None),
    (None, None),
])
def test_session_id(session, expected):
    assert verifier.session_id(session) == expected
