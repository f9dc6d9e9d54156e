from flask import request, jsonify, current_app, Response, render_template_string
import logging

from tools.mdoc import generate_mdoc_offer, load_json_file, load_pki_setup, save_json_file
from utils.errors import DemoError
from utils.qr import qr_png_bytes

logging.basicConfig(level=logging.INFO)


OFFER_PAGE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>Credential Offer QR Code</title>
</head>
<body style="font-family: sans-serif; text-align: center;">
  <h2>Passport mDoc credential offer</h2>
  {% if offer_url %}
    <img src="{{ qrcode(offer_url, box_size=8, border=2) }}" alt="credential offer QR code">
    <p>Scan with any OID4VCI wallet or paste the link in the wallet:</p>
    <p><code style="word-break: break-all;">{{ offer_url }}</code></p>
    {% if metadata %}
      <p>Document type: {{ metadata.doctype }} &middot; Web ID: {{ metadata.webId }}</p>
    {% endif %}
  {% else %}
    <p>No credential offer found. POST passport data to <code>/generate-offer</code> first.</p>
  {% endif %}
  <p><small>Public URL: {{ server }}</small></p>
</body>
</html>
"""


def init_app(app):
    app.add_url_rule('/', view_func=offer_page, methods=['GET'])
    app.add_url_rule('/credential-offer.json', view_func=credential_offer_json, methods=['GET'])
    app.add_url_rule('/qr-code.png', view_func=qr_code_png, methods=['GET'])
    app.add_url_rule('/generate-offer', view_func=generate_offer, methods=['POST'])
    return


def _load_offer():
    mode = current_app.config["MODE"]
    try:
        return load_json_file(mode.offer_file)
    except (OSError, ValueError):
        return None


def offer_page():
    mode = current_app.config["MODE"]
    saved = _load_offer() or {}
    offer_url = (saved.get("credentialOffer") or {}).get("url")
    return render_template_string(OFFER_PAGE, offer_url=offer_url, metadata=saved.get("metadata"), server=mode.server)


def credential_offer_json():
    saved = _load_offer()
    if not saved:
        return jsonify({"error": "not_found", "error_description": "No credential offer found. Please generate one first."}), 404
    return jsonify(saved)


def qr_code_png():
    saved = _load_offer()
    offer_url = ((saved or {}).get("credentialOffer") or {}).get("url")
    if not offer_url:
        return jsonify({"error": "not_found", "error_description": "No credential offer found. Please generate one first."}), 404
    headers = {
        "Content-Type": "image/png",
        "Cache-Control": "no-cache",
    }
    return Response(qr_png_bytes(offer_url), headers=headers)


def generate_offer():
    mode = current_app.config["MODE"]
    http = current_app.config["HTTP"]
    body = request.get_json(silent=True) or {}
    passport = body.get("passport")
    web_id = body.get("web_id")
    if not isinstance(passport, dict) or not web_id:
        return jsonify({"error": "invalid_request", "error_description": "passport and web_id are required"}), 400

    try:
        pki = load_pki_setup(mode.pki_file) if body.get("use_pki") else None
    except (OSError, ValueError) as e:
        return jsonify({"error": "invalid_request", "error_description": str(e)}), 400

    try:
        result = generate_mdoc_offer(http, mode, passport, web_id, pki=pki)
    except DemoError as e:
        logging.warning("offer generation failed %s", str(e))
        return jsonify(e.to_dict()), 502
    except ValueError as e:
        return jsonify({"error": "invalid_request", "error_description": str(e)}), 400

    save_json_file(mode.offer_file, result)
    logging.info("new credential offer saved to %s", mode.offer_file)
    return jsonify({"success": True, "offer": result})
