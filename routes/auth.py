from flask import request, jsonify, current_app, redirect, render_template_string
import logging

from tools import verifier, webauth
from utils.errors import AuthenticationError, VerificationError

logging.basicConfig(level=logging.INFO)


WAITING_PAGE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <meta http-equiv="refresh" content="3">
  <title>Waiting for Authentication</title>
</head>
<body style="font-family: sans-serif; text-align: center;">
  <h2>Waiting for Authentication</h2>
  <p>Please present your passport credential in your wallet app.</p>
  {% if qr_url %}
    <img src="{{ qrcode(qr_url, box_size=6, border=2) }}" alt="presentation request QR code">
  {% endif %}
  <p><small>Session: {{ session_id }}</small></p>
</body>
</html>
"""


def init_app(app):
    app.add_url_rule('/auth/start', view_func=auth_start, methods=['POST'])
    app.add_url_rule('/auth/present', view_func=auth_present, methods=['POST'])
    app.add_url_rule('/auth/status/<session_id>', view_func=auth_status, methods=['GET'])
    app.add_url_rule('/auth/callback/<session_id>', view_func=auth_callback, methods=['GET'])
    return


def auth_start():
    body = request.get_json(silent=True) or {}
    return_url = body.get("returnUrl")
    if not return_url:
        return jsonify({"error": "invalid_request", "error_description": "returnUrl is required"}), 400
    try:
        session = webauth.start_auth_session(
            current_app.config["HTTP"],
            current_app.config["MODE"],
            current_app.config["AUTH_SESSIONS"],
            body.get("website"),
            return_url,
        )
    except VerificationError as e:
        logging.warning("auth start failed %s", str(e))
        return jsonify(e.to_dict()), 502
    return jsonify(session)


def auth_present():
    body = request.get_json(silent=True) or {}
    try:
        result = webauth.present(
            current_app.config["MODE"],
            current_app.config["AUTH_SESSIONS"],
            current_app.config["AUTH_KEY"],
            body.get("sessionId"),
            body.get("vpToken"),
        )
    except AuthenticationError as e:
        return jsonify(e.to_dict()), e.status_code or 400
    return jsonify(result)


def auth_status(session_id):
    session = current_app.config["AUTH_SESSIONS"].get(session_id)
    if not session:
        return jsonify({"error": "not_found", "error_description": "Session not found"}), 404
    return jsonify(session)


def auth_callback(session_id):
    session = current_app.config["AUTH_SESSIONS"].get(session_id)
    if not session:
        return "Session not found", 404
    if session["status"] == webauth.COMPLETED:
        return redirect(webauth.return_redirect(session))
    qr_url = verifier.session_url(session["presentationRequest"])
    return render_template_string(WAITING_PAGE, session_id=session_id, qr_url=qr_url)
