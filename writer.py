import argparse
import json
import logging
import os

from card_url import build_card_url
from config import load_config
from nfc_interface import MockNFC, NfcpyNFC, parse_tag_records
from payload import TAG_CAPACITY, contact_from_profile, describe, validate_contact
from payload_cache import PayloadCache

log = logging.getLogger(__name__)

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
DEFAULT_CONFIG_PATH = os.path.join(BASE_DIR, "config.json")
DEFAULT_PROFILE_PATH = os.path.join(BASE_DIR, "profile.json")


def _load_json(path):
    with open(path) as f:
        return json.load(f)


def _make_nfc(config):
    if config.get("nfc_mode") == "nfcpy":
        return NfcpyNFC(config["nfc_device"])
    return MockNFC(capacity=int(config["mock_capacity"]))


def _load_card(config_path, profile_path):
    config = load_config(config_path)
    profile = _load_json(profile_path)
    contact = contact_from_profile(profile)
    validate_contact(contact)
    card_url = build_card_url(profile.get("id"), config["card_host"])
    return config, contact, card_url


def read_tag_once(config_path=DEFAULT_CONFIG_PATH):
    config = load_config(config_path)
    nfc = _make_nfc(config)
    card = parse_tag_records(nfc.read_tag())
    print(card["card_url"])
    return card


def simulate(capacity, config_path=DEFAULT_CONFIG_PATH, profile_path=DEFAULT_PROFILE_PATH):
    config, contact, card_url = _load_card(config_path, profile_path)
    bundle = PayloadCache().select(contact, capacity, card_url, config.get("record_overhead"))
    summary = describe(bundle, capacity)
    print(json.dumps(summary))
    return summary


def print_sizes(config_path=DEFAULT_CONFIG_PATH, profile_path=DEFAULT_PROFILE_PATH):
    config, contact, card_url = _load_card(config_path, profile_path)
    cache = PayloadCache()
    summaries = []
    for model, capacity in sorted(TAG_CAPACITY.items()):
        bundle = cache.select(contact, capacity, card_url, config.get("record_overhead"))
        summary = describe(bundle, capacity)
        print(f"NTAG{model} ({capacity} bytes): {summary['type']}, {summary['message_size']} bytes")
        summaries.append(summary)
    return summaries


def run(config_path=DEFAULT_CONFIG_PATH, profile_path=DEFAULT_PROFILE_PATH):
    config, contact, card_url = _load_card(config_path, profile_path)
    cache = PayloadCache()
    overhead = config.get("record_overhead")
    nfc = _make_nfc(config)
    log.info("TapCard writer running for %s. Tap a tag to write.", contact["name"])
    while True:
        try:
            result = nfc.write_card(lambda capacity: cache.select(contact, capacity, card_url, overhead))
            if result["success"]:
                log.info(f"Wrote {result['payload_type']} card to {result['tag_name']} "
                         f"({result['bytes_written']}/{result['capacity']} bytes)")
            else:
                log.warning(f"Write failed: {result['error']}")
        except KeyboardInterrupt:
            break
        except Exception as e:
            log.error(f"Error: {e}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="TapCard tag writer")
    parser.add_argument(
        "--simulate",
        metavar="CAPACITY",
        type=int,
        help="Show what would be written to a tag of CAPACITY bytes and exit",
    )
    parser.add_argument(
        "--read",
        action="store_true",
        help="Read one NFC tag, print its card URL, and exit",
    )
    parser.add_argument(
        "--sizes",
        action="store_true",
        help="Show the payload chosen for each NTAG model and exit",
    )
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    if args.read:
        read_tag_once()
    elif args.sizes:
        print_sizes()
    elif args.simulate is not None:
        simulate(args.simulate)
    else:
        run()
