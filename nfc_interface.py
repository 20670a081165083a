import logging

import ndef

from card_url import is_uuid_profile_id, parse_card_url
from payload import (
    VCARD_MIME_TYPE,
    Rejected,
    build_records,
    encode_message,
    payload_type,
    tag_name_for_capacity,
)
from vcard import parse_vcard

log = logging.getLogger(__name__)

NOT_NDEF_ERROR = "This tag is not NDEF compatible. Please use an NTAG213, NTAG215 or NTAG216 tag"
READ_ONLY_ERROR = "This tag is write-protected and cannot be modified"
TOO_SMALL_ERROR = "This tag is too small for your card"


def parse_tag_records(records):
    """Classify the NDEF records read from a tag into a card.

    Returns {"type": "dual"|"url", "card_url", "profile_id", "legacy", "contact"},
    where legacy marks older name-based profile ids.
    Raises ValueError if no card URL is present.
    """
    card_url = None
    contact = None
    for record in records:
        if isinstance(record, ndef.UriRecord) and card_url is None:
            card_url = record.iri
        elif record.type in (VCARD_MIME_TYPE, "text/vcard") and contact is None:
            contact = parse_vcard(bytes(record.data).decode("utf-8"))
    if card_url is None:
        raise ValueError("No card URL on tag")
    profile_id = parse_card_url(card_url)
    return {
        "type": "dual" if contact is not None else "url",
        "card_url": card_url,
        "profile_id": profile_id,
        "legacy": not is_uuid_profile_id(profile_id),
        "contact": contact,
    }


def _write_result(success, capacity=None, tag_id=None, bundle=None, bytes_written=0, error=None):
    return {
        "success": success,
        "tag_id": tag_id,
        "capacity": capacity,
        "tag_name": tag_name_for_capacity(capacity) if capacity else None,
        "payload_type": payload_type(bundle) if bundle is not None else None,
        "bytes_written": bytes_written,
        "error": error,
    }


class MockNFC:
    """Testing NFC implementation: reads from stdin, writes to stdout."""

    def __init__(self, capacity=504):
        self.capacity = capacity

    def read_tag(self):
        """Block until the user types a card URL and presses Enter."""
        url = input("Tap card (or type card URL): ").strip()
        return [ndef.UriRecord(url)]

    def write_card(self, choose):
        """Print what would be written to a tag of self.capacity bytes.

        `choose` maps the tag capacity to a payload bundle.
        """
        bundle = choose(self.capacity)
        if isinstance(bundle, Rejected):
            return _write_result(False, self.capacity, bundle=bundle, error=TOO_SMALL_ERROR)
        message = encode_message(build_records(bundle))
        print(f"[MockNFC] Would write {payload_type(bundle)} payload ({len(message)} bytes): {message.hex()}")
        return _write_result(True, self.capacity, tag_id="MOCK", bundle=bundle, bytes_written=len(message))


def _open_frontend(device):
    import nfc

    return nfc.ContactlessFrontend(device)


class NfcpyNFC:
    """USB/serial reader-writer driven by nfcpy."""

    def __init__(self, device="usb"):
        self.device = device

    def _connect(self):
        clf = _open_frontend(self.device)
        # Returning False from on-connect keeps the tag for the caller.
        tag = clf.connect(rdwr={"on-connect": lambda tag: False})
        return clf, tag

    def read_tag(self):
        clf, tag = self._connect()
        try:
            if not tag or tag.ndef is None:
                raise ValueError(NOT_NDEF_ERROR)
            return list(tag.ndef.records)
        finally:
            clf.close()

    def write_card(self, choose):
        clf, tag = self._connect()
        try:
            if not tag:
                return _write_result(False, error="No tag detected")
            tag_id = bytes(tag.identifier).hex().upper()
            if tag.ndef is None:
                return _write_result(False, tag_id=tag_id, error=NOT_NDEF_ERROR)
            capacity = tag.ndef.capacity
            log.info("Tag %s detected (%s, %d bytes)", tag_id, tag_name_for_capacity(capacity), capacity)
            if not tag.ndef.is_writeable:
                return _write_result(False, capacity, tag_id, error=READ_ONLY_ERROR)
            bundle = choose(capacity)
            if isinstance(bundle, Rejected):
                return _write_result(False, capacity, tag_id, bundle, error=TOO_SMALL_ERROR)
            records = build_records(bundle)
            size = len(encode_message(records))
            if size > capacity:
                return _write_result(
                    False, capacity, tag_id, bundle,
                    error=f"Message too large ({size} bytes). This tag only has {capacity} bytes.",
                )
            tag.ndef.records = records
            log.info("Wrote %d bytes (%d%% of capacity)", size, size * 100 // capacity)
            return _write_result(True, capacity, tag_id, bundle, bytes_written=size)
        finally:
            clf.close()
