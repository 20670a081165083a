SOCIAL_URL_TEMPLATES = {
    "linkedin": "https://linkedin.com/in/{}",
    "twitter": "https://twitter.com/{}",
    "x": "https://twitter.com/{}",
    "instagram": "https://instagram.com/{}",
    "facebook": "https://facebook.com/{}",
    "github": "https://github.com/{}",
}

SHARE_METHOD_CODES = {"nfc": "N", "qr": "Q", "link": "L", "tag": "T"}
PROFILE_TYPE_CODES = {"personal": "1", "professional": "2", "custom": "3"}

FIELD_PROPERTIES = (
    ("title", "TITLE"),
    ("company", "ORG"),
    ("phone", "TEL;TYPE=CELL"),
    ("email", "EMAIL;TYPE=WORK"),
    ("website", "URL"),
)


def resolve_social_url(platform, handle):
    """Turn a social handle into a profile URL, or None if it can't be resolved.

    Absolute URLs are passed through untouched whatever the platform is.
    """
    if handle.startswith("http://") or handle.startswith("https://"):
        return handle
    clean = handle[1:] if handle.startswith("@") else handle
    template = SOCIAL_URL_TEMPLATES.get(platform.lower())
    if template is None or not clean:
        return None
    return template.format(clean)


def split_name(name):
    """Return (family, given) for the structured N field.

    A single token is treated as the family name with an empty given name,
    which is how address books expect mononyms.
    """
    parts = name.split()
    if len(parts) >= 2:
        return parts[-1], parts[0]
    return name.strip(), ""


def _value(contact, key):
    value = contact.get(key)
    if value is None:
        return ""
    return str(value).strip()


def _escape(value):
    """RFC 2426 text escaping."""
    value = value.replace("\r\n", "\n").replace("\r", "\n")
    return (
        value.replace("\\", "\\\\")
        .replace(",", "\\,")
        .replace(";", "\\;")
        .replace("\n", "\\n")
    )


def _unescape(value):
    out = []
    chars = iter(value)
    for ch in chars:
        if ch == "\\":
            nxt = next(chars, "")
            out.append("\n" if nxt in ("n", "N") else nxt)
        else:
            out.append(ch)
    return "".join(out)


def _split_components(value):
    """Split a structured value on `;`, leaving escaped `\\;` alone."""
    parts = [""]
    escaped = False
    for ch in value:
        if escaped:
            parts[-1] += "\\" + ch
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch == ";":
            parts.append("")
        else:
            parts[-1] += ch
    return [_unescape(part) for part in parts]


def _context_lines(context):
    lines = []
    method = SHARE_METHOD_CODES.get(context.get("method"))
    if method:
        lines.append(f"X-TC-M:{method}")
    if context.get("timestamp") is not None:
        lines.append(f"X-TC-T:{int(context['timestamp'])}")
    profile_type = PROFILE_TYPE_CODES.get(context.get("profile_type"))
    if profile_type:
        lines.append(f"X-TC-P:{profile_type}")
    return lines


def build_vcard(contact, context=None):
    name = _value(contact, "name")
    family, given = split_name(name)
    lines = [
        "BEGIN:VCARD",
        "VERSION:3.0",
        f"FN:{_escape(name)}",
        f"N:{_escape(family)};{_escape(given)};;;",
    ]
    for key, prop in FIELD_PROPERTIES:
        if _value(contact, key):
            lines.append(f"{prop}:{_escape(_value(contact, key))}")
    for platform, handle in (contact.get("social") or {}).items():
        url = resolve_social_url(platform, str(handle).strip())
        if url is not None:
            lines.append(f"URL:{_escape(url)}")
    if context:
        lines.extend(_context_lines(context))
    lines.append("END:VCARD")
    return "\n".join(lines) + "\n"


def vcard_bytes(contact):
    return build_vcard(contact).encode("utf-8")


def _unfold(text):
    lines = []
    for raw in text.replace("\r\n", "\n").split("\n"):
        if raw[:1] in (" ", "\t") and lines:
            lines[-1] += raw[1:]
        elif raw:
            lines.append(raw)
    return lines


def parse_vcard(text):
    """Parse a received vCard into a contact dict.

    Only the properties written by build_vcard are understood; anything else
    is ignored. Raises ValueError if the text is not a vCard.
    """
    lines = _unfold(text)
    if not lines or lines[0].upper() != "BEGIN:VCARD" or lines[-1].upper() != "END:VCARD":
        raise ValueError("Not a vCard")
    contact = {"name": "", "urls": [], "share_context": {}}
    methods = {code: method for method, code in SHARE_METHOD_CODES.items()}
    profile_types = {code: kind for kind, code in PROFILE_TYPE_CODES.items()}
    for line in lines[1:-1]:
        key, sep, value = line.partition(":")
        if not sep:
            continue
        prop = key.split(";")[0].upper()
        if prop == "FN":
            contact["name"] = _unescape(value)
        elif prop == "N" and not contact["name"]:
            parts = _split_components(value) + [""]
            contact["name"] = f"{parts[1]} {parts[0]}".strip()
        elif prop == "TITLE":
            contact["title"] = _unescape(value)
        elif prop == "ORG":
            contact["company"] = _split_components(value)[0]
        elif prop == "TEL":
            contact.setdefault("phone", _unescape(value))
        elif prop == "EMAIL":
            contact.setdefault("email", _unescape(value))
        elif prop == "URL":
            contact["urls"].append(_unescape(value))
        elif prop == "X-TC-M" and value in methods:
            contact["share_context"]["method"] = methods[value]
        elif prop == "X-TC-T" and value.isdigit():
            contact["share_context"]["timestamp"] = int(value)
        elif prop == "X-TC-P" and value in profile_types:
            contact["share_context"]["profile_type"] = profile_types[value]
    if contact["urls"]:
        contact["website"] = contact["urls"][0]
    return contact
