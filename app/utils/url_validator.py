import ipaddress
import logging
import re
from urllib.parse import urlsplit

from pydantic import HttpUrl, TypeAdapter, ValidationError

# Setup logging
logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = ("http", "https")

# Matches the width of urls.original_url
MAX_URL_LENGTH = 2048

# Hosts we refuse to shorten. Private ranges are matched by prefix only.
BLOCKED_HOSTS = {"localhost", "127.0.0.1"}
BLOCKED_HOST_PREFIXES = ("192.168.", "10.", "172.")

_TLD_PATTERN = re.compile(r"^(?:[a-z]{2,}|xn--[a-z0-9-]+)$", re.IGNORECASE)

_http_url = TypeAdapter(HttpUrl)


def _is_ip_literal(host):
    try:
        ipaddress.ip_address(host.strip("[]"))
        return True
    except ValueError:
        return False


def _has_valid_tld(host):
    labels = host.rstrip(".").split(".")
    if len(labels) < 2 or not all(labels):
        return False
    return bool(_TLD_PATTERN.match(labels[-1]))


def is_blocked_host(host):
    """Check whether a hostname points at loopback or a private network"""
    host = host.lower()
    if host in BLOCKED_HOSTS:
        return True
    return host.startswith(BLOCKED_HOST_PREFIXES)


def is_valid_url(url):
    """Check that a submitted value is a public http(s) URL.

    Args:
        url: The value submitted by the client

    Returns:
        bool: True if the URL has an http/https scheme, a real host and
              does not point at localhost or a private network,
              and fits in MAX_URL_LENGTH characters
    """
    if not isinstance(url, str) or not url:
        return False

    if len(url) > MAX_URL_LENGTH:
        return False

    try:
        parts = urlsplit(url)
        if parts.scheme.lower() not in ALLOWED_SCHEMES or not parts.netloc:
            return False

        parsed = _http_url.validate_python(url)
    except (ValueError, ValidationError):
        return False

    # Canonical form can grow through percent-encoding
    if len(str(parsed).removesuffix("/")) > MAX_URL_LENGTH:
        return False

    host = parsed.host
    if not host:
        return False

    if not (_is_ip_literal(host) or _has_valid_tld(host)):
        return False

    if is_blocked_host(host):
        logger.info(f"Rejected URL with blocked host: {host}")
        return False

    return True


def normalize_url(url):
    """Return the canonical form of a URL without its trailing slash.

    Falls back to the input unchanged when it cannot be parsed.
    """
    try:
        canonical = str(_http_url.validate_python(url))
    except (ValueError, ValidationError):
        return url

    if canonical.endswith("/"):
        canonical = canonical[:-1]
    return canonical
