import re
import uuid
from urllib.parse import urlparse

DEFAULT_CARD_HOST = "tap-card-site.vercel.app"

_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{10,12}$",
    re.IGNORECASE,
)


def new_profile_id():
    return str(uuid.uuid4())


def build_card_url(profile_id, host=DEFAULT_CARD_HOST):
    """Return the share URL for a profile.

    The URL only depends on the profile id so tags already in the wild keep
    working after the name, phone, etc. are edited.
    """
    if not profile_id:
        raise ValueError("profile_id required")
    if not host:
        raise ValueError("host required")
    return f"https://{host}/share/{profile_id}"


def parse_card_url(url, host=None):
    """Extract the profile id from a share URL.

    Raises ValueError if the URL is not a share link (or not on `host`).
    """
    parsed = urlparse(url.strip())
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"Not a card URL: {url!r}")
    if host is not None and parsed.netloc.lower() != host.lower():
        raise ValueError(f"Card URL is not on {host}: {url!r}")
    prefix, sep, profile_id = parsed.path.partition("/share/")
    profile_id = profile_id.strip("/")
    if prefix or not sep or not profile_id or "/" in profile_id:
        raise ValueError(f"Not a card URL: {url!r}")
    return profile_id


def is_uuid_profile_id(value):
    """True for UUID ids; name-based ids from older shares return False."""
    return bool(_UUID_RE.match(value))
