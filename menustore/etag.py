from __future__ import annotations

import re

ETAG_NAMESPACE = "menus"
ETAG_KIND = "menu"


def make_etag(ident: object, version: int, *, namespace: str = ETAG_NAMESPACE, kind: str = ETAG_KIND) -> str:
    """Create a weak ETag string like: W/"menus:menu:{id}:v{n}"."""
    return f'W/"{namespace}:{kind}:{ident}:v{int(version)}"'


# weak or strong form; the version comparison is the same either way
_IF_MATCH_RE = re.compile(r"(?:W/)?\"(?P<ns>[^:]+):(?P<kind>[^:]+):(?P<id>.+):v(?P<v>\d+)\"")


def parse_if_match(raw: str | None) -> tuple[str | None, str | None, str | None, int | None]:
    """Parse If-Match header and return (namespace, kind, id, version).

    Returns (None,None,None,None) if not parseable.
    """
    if not raw:
        return None, None, None, None
    m = _IF_MATCH_RE.fullmatch(raw.strip())
    if not m:
        return None, None, None, None
    return m.group("ns"), m.group("kind"), m.group("id"), int(m.group("v"))


def version_from_if_match(raw: str | None, ident: object) -> int | None:
    """Return the version carried by an If-Match tag for this menu, else None."""
    ns, kind, tag_id, version = parse_if_match(raw)
    if ns != ETAG_NAMESPACE or kind != ETAG_KIND or tag_id != str(ident):
        return None
    return version
