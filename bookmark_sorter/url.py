"""Canonicalise URLs into comparison keys for deduplication."""

from __future__ import annotations

from urllib.parse import parse_qsl, quote, urlsplit, urlunsplit

DEFAULT_PORTS: dict[str, int] = {"http": 80, "https": 443}


def normalize_url(url: str) -> str:
    """Return the canonical form of ``url`` or ``""`` when it cannot be parsed.

    Scheme and host are lower-cased, default ports dropped, trailing slashes
    removed from non-root paths and query parameters re-encoded in key
    order. The fragment is kept verbatim. URLs without a host (file:, mailto:,
    javascript:) are kept; only http and https require one.
    """
    try:
        parts = urlsplit(url.strip())
        port = parts.port
    except (AttributeError, ValueError):
        return ""

    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    if not scheme or (scheme in DEFAULT_PORTS and not host):
        return ""

    if ":" in host:
        host = f"[{host}]"
    netloc = host
    if host and port is not None and DEFAULT_PORTS.get(scheme) != port:
        netloc = f"{host}:{port}"
    if host and parts.username is not None:
        userinfo = parts.username
        if parts.password is not None:
            userinfo = f"{userinfo}:{parts.password}"
        netloc = f"{userinfo}@{netloc}"

    path = parts.path
    # Opaque paths (javascript:, mailto:) are kept as written.
    if host or path.startswith("/"):
        path = path.rstrip("/") or "/"

    pairs = parse_qsl(parts.query, keep_blank_values=True)
    pairs.sort(key=lambda pair: pair[0])
    query = "&".join(f"{_encode(key)}={_encode(value)}" for key, value in pairs)

    return urlunsplit((scheme, netloc, path, query, parts.fragment))


def _encode(component: str) -> str:
    return quote(component, safe="-_.!~*'()")
