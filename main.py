import os
import logging
from flask import Flask, jsonify
from flask_qrcode import QRcode
import requests

import env
from routes import auth, offer
from tools import webauth
from utils import oidc4vc


def create_app(mode=None, http=None, auth_sessions=None) -> Flask:
    """Application factory: configure, wire dependencies, register routes."""
    # Base Flask app
    app = Flask(__name__)

    @app.get("/ping")
    def ping():
        return "pong"

    # ---- Logging (basic) ----
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))

    # ---- Environment / Mode ----
    # MYENV selects local or codespaces, see env.py
    mode = mode or env.currentMode(os.getenv("MYENV", "local"))

    # ---- App-wide config values (shared deps) ----
    app.config["MODE"] = mode
    # one HTTP session to the issuer, passed to the tools explicitly
    app.config["HTTP"] = http or requests.Session()
    # passport login sessions and the key signing their auth tokens
    app.config["AUTH_SESSIONS"] = auth_sessions if auth_sessions is not None else webauth.AuthSessions()
    app.config["AUTH_KEY"] = oidc4vc.generate_signing_key("Ed25519")

    # ---- Init extensions bound to app ----
    QRcode(app)

    # ---- Register routes ----
    offer.init_app(app)
    auth.init_app(app)

    # ---- Error handlers ----
    @app.errorhandler(404)
    def page_not_found(e):
        return jsonify({"error": "not_found", "error_description": "Page not found"}), 404

    @app.errorhandler(500)
    def error_500(e):
        logging.error("500 on QR test server: %s", e)
        return jsonify({"error": "server_error", "error_description": "Internal server error"}), 500

    return app


# ---- Dev entrypoint: `python main.py` ----
if __name__ == "__main__":
    app = create_app()
    mode = app.config["MODE"]
    logging.info("QR Code Test Server running at %s (env: %s)", mode.server, mode.myenv)
    logging.info("Open this URL to test QR code scanning")
    app.run(host=mode.IP, port=mode.port, debug=os.getenv("FLASK_DEBUG", "0") == "1", threaded=True)
