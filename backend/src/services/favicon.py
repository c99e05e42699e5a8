"""Best-effort favicon URLs and safe link targets for bookmarks."""
from urllib.parse import urlencode, urlparse

DEFAULT_FAVICON_SERVICE_URL = "https://www.google.com/s2/favicons"
DEFAULT_FAVICON_SIZE = 64
LINK_SCHEMES = ("http", "https")


def extract_hostname(url: str) -> str | None:
    """
    Get the hostname of an absolute URL.

    Returns None when the value does not parse as an absolute URL with a host
    (e.g. 'not a url', 'example.com' without a scheme, or a bad port).
    """
    try:
        parsed = urlparse(url.strip())
        # Accessing .port validates it and raises ValueError when malformed
        parsed.port  # noqa: B018
    except ValueError:
        return None
    if not parsed.scheme or not parsed.netloc:
        return None
    return parsed.hostname or None


def favicon_url(
    url: str,
    service_url: str = DEFAULT_FAVICON_SERVICE_URL,
    size: int = DEFAULT_FAVICON_SIZE,
) -> str | None:
    """Build the favicon service URL for a bookmark URL, or None if it has no host."""
    hostname = extract_hostname(url)
    if hostname is None:
        return None
    return f"{service_url}?{urlencode({'domain': hostname, 'sz': size})}"


def safe_href(url: str) -> str | None:
    """Return the URL for use as a link target, or None unless it is http(s) with a host."""
    if extract_hostname(url) is None:
        return None
    if urlparse(url.strip()).scheme.lower() not in LINK_SCHEMES:
        return None
    return url.strip()
