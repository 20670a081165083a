import argparse
import json
import logging
import os
import time
from datetime import datetime, timezone

import ndef
from flask import Flask, Response, jsonify, render_template, request

from card_url import DEFAULT_CARD_HOST, build_card_url, new_profile_id
from config import load_config
from nfc_interface import MockNFC, NfcpyNFC, parse_tag_records
from payload import (
    CONTACT_FIELDS,
    TAG_CAPACITY,
    InvalidCapacity,
    InvalidContact,
    contact_from_profile,
    describe,
    is_social_map,
    validate_contact,
)
from payload_cache import PayloadCache
from vcard import PROFILE_TYPE_CODES, SHARE_METHOD_CODES, build_vcard

app = Flask(__name__)
log = logging.getLogger(__name__)

CONFIG_PATH = os.path.join(os.path.dirname(__file__), "config.json")
PROFILE_PATH = os.path.join(os.path.dirname(__file__), "profile.json")
HISTORY_PATH = os.path.join(os.path.dirname(__file__), "history.json")

PROFILE_ID_MISSING = "This profile has no card link yet. Save it once to create one"

PAYLOAD_CACHE = PayloadCache()


def _load_config():
    return load_config(CONFIG_PATH)


def _load_profile():
    if not os.path.exists(PROFILE_PATH):
        return {"type": "personal", "name": "", "social": {}}
    with open(PROFILE_PATH) as f:
        return json.load(f)


def _save_profile(profile):
    with open(PROFILE_PATH, "w") as f:
        json.dump(profile, f, indent=2)


def _load_history():
    if not os.path.exists(HISTORY_PATH):
        return []
    with open(HISTORY_PATH) as f:
        return json.load(f)


def _save_history(history):
    with open(HISTORY_PATH, "w") as f:
        json.dump(history, f, indent=2)


def _record_write(result, profile_id):
    history = _load_history()
    history.insert(0, {
        "tag_id": result["tag_id"],
        "tag_name": result["tag_name"],
        "capacity": result["capacity"],
        "payload_type": result["payload_type"],
        "bytes_written": result["bytes_written"],
        "profile_id": profile_id,
        "written_at": datetime.now(timezone.utc).isoformat(),
    })
    _save_history(history)


def _card_url(profile, config):
    if not profile.get("id"):
        return None
    return build_card_url(profile["id"], config["card_host"])


def _make_nfc(config):
    if config.get("nfc_mode") == "nfcpy":
        return NfcpyNFC(config.get("nfc_device", "usb"))
    return MockNFC(capacity=int(config.get("mock_capacity", TAG_CAPACITY[215])))


def _capacity_from_args(args):
    tag = args.get("tag")
    if tag is not None:
        model = int(tag) if tag.isdigit() else None
        if model not in TAG_CAPACITY:
            raise InvalidCapacity(f"Unknown tag model: {tag!r}")
        return TAG_CAPACITY[model]
    capacity = args.get("capacity", "")
    try:
        return int(capacity)
    except ValueError:
        raise InvalidCapacity(f"Invalid tag capacity: {capacity!r}")


@app.route("/")
def index():
    config = _load_config()
    profile = _load_profile()
    return render_template("index.html", profile=profile, card_url=_card_url(profile, config))


@app.route("/profile", methods=["GET", "POST"])
def profile():
    config = _load_config()
    current = _load_profile()
    if request.method == "POST":
        data = request.get_json(silent=True)
        if not data or not isinstance(data, dict):
            return jsonify({"error": "profile fields required"}), 400
        if "social" in data and not is_social_map(data["social"]):
            return jsonify({"error": "social must map platform names to handles"}), 400
        for key in CONTACT_FIELDS:
            if key in data:
                current[key] = data[key]
        if data.get("type") in PROFILE_TYPE_CODES:
            current["type"] = data["type"]
        if not current.get("id"):
            current["id"] = new_profile_id()
        _save_profile(current)
        PAYLOAD_CACHE.invalidate()
    return jsonify({**current, "card_url": _card_url(current, config)})


@app.route("/payload")
def payload_preview():
    config = _load_config()
    profile = _load_profile()
    contact = contact_from_profile(profile)
    card_url = _card_url(profile, config)
    try:
        capacity = _capacity_from_args(request.args)
        validate_contact(contact)
        if card_url is None:
            return jsonify({"error": PROFILE_ID_MISSING}), 422
        bundle = PAYLOAD_CACHE.select(contact, capacity, card_url, config.get("record_overhead"))
    except InvalidContact as e:
        return jsonify({"error": str(e)}), 422
    except InvalidCapacity as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(describe(bundle, capacity))


@app.route("/write-tag", methods=["POST"])
def write_tag():
    config = _load_config()
    profile = _load_profile()
    contact = contact_from_profile(profile)
    card_url = _card_url(profile, config)
    try:
        validate_contact(contact)
    except InvalidContact as e:
        return jsonify({"error": str(e)}), 422
    if card_url is None:
        return jsonify({"error": PROFILE_ID_MISSING}), 422

    def choose(capacity):
        return PAYLOAD_CACHE.select(contact, capacity, card_url, config.get("record_overhead"))

    nfc = _make_nfc(config)
    try:
        result = nfc.write_card(choose)
    except InvalidCapacity as e:
        log.error("Tag reported an invalid capacity: %s", e)
        return jsonify({"error": str(e)}), 502
    except OSError as e:
        return jsonify({"error": f"NFC reader unavailable: {e}"}), 503
    if result["success"]:
        _record_write(result, profile["id"])
    return jsonify(result)


@app.route("/read-tag")
def read_tag():
    url = request.args.get("url")
    if url is not None:
        records = [ndef.UriRecord(url)]
    else:
        nfc = _make_nfc(_load_config())
        try:
            records = nfc.read_tag()
        except OSError as e:
            return jsonify({"error": f"NFC reader unavailable: {e}"}), 503
        except ValueError as e:
            return jsonify({"card": None, "error": str(e)})
    try:
        card = parse_tag_records(records)
    except ValueError as e:
        return jsonify({"card": None, "error": str(e)})
    return jsonify({"card": card, "error": None})


@app.route("/vcard")
def vcard():
    method = request.args.get("method", "qr")
    if method not in SHARE_METHOD_CODES:
        return jsonify({"error": "invalid method"}), 400
    profile = _load_profile()
    contact = contact_from_profile(profile)
    try:
        validate_contact(contact)
    except InvalidContact as e:
        return jsonify({"error": str(e)}), 422
    context = {"method": method, "timestamp": int(time.time()), "profile_type": profile.get("type")}
    return Response(
        build_vcard(contact, context),
        mimetype="text/vcard",
        headers={"Content-Disposition": "attachment; filename=card.vcf"},
    )


@app.route("/history")
def history():
    return render_template("history.html", history=_load_history())


@app.route("/history/delete", methods=["POST"])
def history_delete():
    data = request.get_json()
    written_at = data.get("written_at") if data else None
    if not written_at:
        return jsonify({"error": "written_at required"}), 400
    _save_history([h for h in _load_history() if h["written_at"] != written_at])
    return jsonify({"status": "ok"})


@app.route("/history/clear", methods=["POST"])
def history_clear():
    _save_history([])
    return jsonify({"status": "ok"})


@app.route("/settings", methods=["GET", "POST"])
def settings():
    config = _load_config()
    saved = False
    error = None
    if request.method == "POST":
        config["card_host"] = request.form.get("card_host", config["card_host"]).strip() or DEFAULT_CARD_HOST
        config["nfc_mode"] = request.form.get("nfc_mode", config["nfc_mode"])
        config["nfc_device"] = request.form.get("nfc_device", config["nfc_device"])
        try:
            config["mock_capacity"] = int(request.form.get("mock_capacity", config["mock_capacity"]))
            overhead = request.form.get("record_overhead", "")
            config["record_overhead"] = int(overhead) if str(overhead).strip() else None
        except ValueError:
            error = "Capacity and overhead must be whole numbers"
        if error is None:
            with open(CONFIG_PATH, "w") as f:
                json.dump(config, f, indent=2)
            saved = True
    return render_template("settings.html", config=config, saved=saved, error=error)


@app.errorhandler(404)
def not_found(e):
    return render_template("404.html"), 404


@app.route("/health")
def health():
    return jsonify({"status": "ok"})


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="TapCard tag writer web UI")
    parser.add_argument("--host", default="127.0.0.1",
                        help="Host to bind to (use 0.0.0.0 to expose on the network)")
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    app.run(host=args.host, port=5000)
