from tools.health import check_services


def _mock_all(http, status=200, verifier_down=None):
    http.add("GET", "http://issuer.test/health", status=status, text="ok")
    if verifier_down:
        http.add_exception("GET", "http://verifier.test/health", verifier_down)
    else:
        http.add("GET", "http://verifier.test/health", status=status, text="ok")
    http.add("GET", "http://issuer.test/draft13/.well-known/openid-credential-issuer", status=status, json={})
    http.add("GET", "http://verifier.test/.well-known/openid-configuration", status=status, json={})


def test_all_up(http, mode):
    _mock_all(http)
    report = check_services(http, mode)
    assert set(report) == {"issuer", "verifier", "issuer_metadata", "verifier_configuration"}
    assert all(entry["ok"] for entry in report.values())


def test_error_status(http, mode):
    _mock_all(http, status=503)
    report = check_services(http, mode)
    assert report["issuer"] == {"url": "http://issuer.test/health", "ok": False, "status": 503}


def test_unreachable(http, mode, connection_error):
    _mock_all(http, verifier_down=connection_error)
    report = check_services(http, mode)
    assert report["verifier"]["ok"] is False
    assert report["verifier"]["status"] is None
    assert "connection refused" in report["verifier"]["error"]
    assert report["issuer"]["ok"] is True
