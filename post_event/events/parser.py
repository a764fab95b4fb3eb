"""Parse event markup from post text."""
import re

# Opening [event ...] tag, optionally closed by [/event]
EVENT_TAG_PATTERN = re.compile(r"\[event(?P<attrs>(?:\s+[^\]]*)?)\]", re.IGNORECASE)

# key="value", key='value' or key=value
ATTRIBUTE_PATTERN = re.compile(
    r"""(?P<key>[A-Za-z][\w-]*)\s*=\s*(?:"(?P<dq>[^"]*)"|'(?P<sq>[^']*)'|(?P<bare>[^\s"'\]]+))"""
)

KNOWN_KEYS = {
    "name": "name",
    "start": "start",
    "end": "end",
    "status": "status",
    "allowedgroups": "allowedGroups",
    "allowed-groups": "allowedGroups",
    "allowed_groups": "allowedGroups",
}


class BBCodeEventParser:
    """
    Extract event fields from an [event] tag in post text.

    Expected format:
        [event start="2024-05-01 18:00" end="2024-05-01 20:00"
               status="private" name="Team dinner" allowedGroups="staff,alice"]
        [/event]

    Attribute names are case-insensitive, and allowed-groups is accepted as
    a spelling of allowedGroups. Unknown attributes are ignored. Only the
    first tag in the text counts.
    """

    def extract(self, text: str | None) -> dict[str, str] | None:
        if not text:
            return None

        match = EVENT_TAG_PATTERN.search(text)
        if not match:
            return None

        fields = {}
        for attr in ATTRIBUTE_PATTERN.finditer(match.group("attrs")):
            key = KNOWN_KEYS.get(attr.group("key").lower())
            if key is None:
                continue
            value = next(
                (g for g in (attr.group("dq"), attr.group("sq"), attr.group("bare")) if g is not None),
                "",
            )
            fields[key] = value.strip()

        return fields
