"""Client identity extraction from proxy headers."""

from collections.abc import Mapping

# Checked in this order; the first header present wins
PROXY_HEADERS = ("x-forwarded-for", "x-real-ip", "cf-connecting-ip", "forwarded")

UNKNOWN_CLIENT = "unknown"


def _parse_forwarded(value: str) -> str:
    """Extract the `for=` node from the first element of an RFC 7239 header."""
    first_element = value.split(",")[0]
    for pair in first_element.split(";"):
        name, _, node = pair.strip().partition("=")
        if name.strip().lower() != "for":
            continue
        node = node.strip().strip('"')
        if node.startswith("["):
            # IPv6 form: "[2001:db8::1]:4711"
            node = node[1:].split("]")[0]
        return node or UNKNOWN_CLIENT
    return UNKNOWN_CLIENT


def get_client_identifier(headers: Mapping[str, str]) -> str:
    """Extract the client IP from proxy headers.

    Args:
        headers: Request headers (any case; Starlette Headers or a plain dict)

    Returns:
        First client address from the highest-priority header present,
        or "unknown" when none is present.

    Example:
        >>> get_client_identifier({"x-forwarded-for": "1.2.3.4, 5.6.6.6"})
        '1.2.3.4'
    """
    lowered = {name.lower(): value for name, value in headers.items()}

    for header in PROXY_HEADERS:
        value = lowered.get(header)
        if value is None:
            continue
        if header == "forwarded":
            return _parse_forwarded(value)
        return value.split(",")[0].strip() or UNKNOWN_CLIENT

    return UNKNOWN_CLIENT
