import hashlib
import json

from payload import choose_bundle, encode_contact, validate_capacity, validate_contact


def contact_hash(contact, card_url):
    canonical = json.dumps({"contact": contact, "url": card_url}, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class PayloadCache:
    """Caches encoded vCard/URL bytes per contact.

    Only the encoding is cached. The dual/URL-only decision depends on the
    tag in front of the reader and is made fresh on every select().
    """

    def __init__(self):
        self._entries = {}
        self.hits = 0
        self.misses = 0

    def get(self, contact, card_url):
        key = contact_hash(contact, card_url)
        if key in self._entries:
            self.hits += 1
            return self._entries[key]
        self.misses += 1
        encoded = encode_contact(contact, card_url)
        self._entries[key] = encoded
        return encoded

    def select(self, contact, capacity, card_url, record_overhead=None):
        validate_capacity(capacity)
        validate_contact(contact)
        vcard, url = self.get(contact, card_url)
        return choose_bundle(vcard, url, capacity, record_overhead)

    def invalidate(self):
        self._entries.clear()

    def __len__(self):
        return len(self._entries)
