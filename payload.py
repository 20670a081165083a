import logging
from collections import namedtuple

import ndef

from vcard import vcard_bytes

log = logging.getLogger(__name__)

TAG_CAPACITY = {213: 144, 215: 504, 216: 888}
VCARD_MIME_TYPE = "text/x-vcard"
REJECTED_REASON = "capacity too small for any payload"
NAME_REQUIRED = "Complete the Name field before sharing your card"
SOCIAL_INVALID = "social must map platform names to handles"
CONTACT_FIELDS = ("name", "title", "company", "phone", "email", "website", "social")

DualPayload = namedtuple("DualPayload", ["vcard", "url"])
UrlOnlyPayload = namedtuple("UrlOnlyPayload", ["url"])
Rejected = namedtuple("Rejected", ["reason"])


class InvalidContact(ValueError):
    pass


class InvalidCapacity(ValueError):
    pass


def payload_type(bundle):
    if isinstance(bundle, DualPayload):
        return "dual"
    if isinstance(bundle, UrlOnlyPayload):
        return "url"
    return "rejected"


def tag_name_for_capacity(capacity):
    for model in sorted(TAG_CAPACITY, reverse=True):
        if capacity >= TAG_CAPACITY[model]:
            return f"NTAG{model}"
    return "Unknown"


def default_record_overhead():
    """Header bytes ndeflib adds around a vCard record.

    Measured on a long-form record (payload over 255 bytes) so the value
    also covers vCards too big for the short record header.
    """
    payload = b"\x00" * 256
    encoded = b"".join(ndef.message_encoder([ndef.Record(VCARD_MIME_TYPE, "", payload)]))
    return len(encoded) - len(payload)


def is_social_map(social):
    return isinstance(social, dict) and all(
        isinstance(k, str) and isinstance(v, str) for k, v in social.items()
    )


def contact_from_profile(profile):
    """The contact fields of a saved profile, with blank values left out."""
    return {k: profile[k] for k in CONTACT_FIELDS if profile.get(k) not in (None, "", {})}


def validate_contact(contact):
    name = contact.get("name") if contact else None
    if not isinstance(name, str) or not name.strip():
        raise InvalidContact(NAME_REQUIRED)
    if "social" in contact and not is_social_map(contact["social"]):
        raise InvalidContact(SOCIAL_INVALID)


def validate_capacity(capacity):
    if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity <= 0:
        raise InvalidCapacity(f"Invalid tag capacity: {capacity!r}")


def encode_contact(contact, card_url):
    """Return the capacity-independent (vcard_bytes, url_bytes) pair."""
    return vcard_bytes(contact), card_url.encode("utf-8")


def choose_bundle(vcard, url, capacity, record_overhead=None):
    if record_overhead is None:
        record_overhead = default_record_overhead()
    dual_size = len(vcard) + len(url) + 2 * record_overhead
    if dual_size <= capacity:
        return DualPayload(vcard, url)
    if len(url) + record_overhead <= capacity:
        log.info("Dual payload (%d bytes) exceeds %d bytes, writing URL only", dual_size, capacity)
        return UrlOnlyPayload(url)
    log.warning("Card URL (%d bytes) does not fit a %d byte tag", len(url), capacity)
    return Rejected(REJECTED_REASON)


def select_payload(contact, capacity, card_url, record_overhead=None):
    """Choose what to write onto a tag of `capacity` bytes.

    A card is written as two NDEF records when it fits (vCard, then the card
    URL), falls back to the URL alone, and is rejected when not even the URL
    fits. The same contact, URL and capacity always give byte-identical output.
    """
    validate_capacity(capacity)
    validate_contact(contact)
    vcard, url = encode_contact(contact, card_url)
    return choose_bundle(vcard, url, capacity, record_overhead)


def build_records(bundle):
    """NDEF records for the platform writer: vCard first, URL last."""
    if isinstance(bundle, DualPayload):
        return [
            ndef.Record(VCARD_MIME_TYPE, "", bundle.vcard),
            ndef.UriRecord(bundle.url.decode("utf-8")),
        ]
    if isinstance(bundle, UrlOnlyPayload):
        return [ndef.UriRecord(bundle.url.decode("utf-8"))]
    raise ValueError(f"Nothing to write: {bundle.reason}")


def encode_message(records):
    return b"".join(ndef.message_encoder(records))


def message_size(bundle):
    if isinstance(bundle, Rejected):
        return 0
    return len(encode_message(build_records(bundle)))


def describe(bundle, capacity):
    """Summary used by the HTTP preview and the command-line tool."""
    summary = {
        "type": payload_type(bundle),
        "capacity": capacity,
        "tag_name": tag_name_for_capacity(capacity),
        "message_size": message_size(bundle),
    }
    if isinstance(bundle, DualPayload):
        summary["vcard_size"] = len(bundle.vcard)
    if isinstance(bundle, Rejected):
        summary["reason"] = bundle.reason
    else:
        summary["url"] = bundle.url.decode("utf-8")
    return summary
