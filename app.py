#!/usr/bin/env python3
"""Style Grabber web application."""

from __future__ import annotations

import logging
import os

from flask import Flask, jsonify, request

import style_grabber

logger = logging.getLogger(__name__)

app = Flask(__name__)
app.json.sort_keys = False


def requested_url() -> str:
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return ""
    url = payload.get("url")
    return url.strip() if isinstance(url, str) else ""


@app.post("/scrape")
def scrape():
    url = requested_url()
    if not url:
        return jsonify({"error": "URL is required"}), 400

    try:
        result = style_grabber.extract_page(url)
    except style_grabber.ExtractionError as exc:
        return jsonify({"error": str(exc)}), 500
    return jsonify(result.to_dict()), 200


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    port = int(os.environ.get("PORT", "3000"))
    logger.info("Server running on port %d", port)
    app.run(host=os.environ.get("HOST", "0.0.0.0"), port=port, debug=False)
