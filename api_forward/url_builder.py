"""Target URL construction from a route's base URL and validated parameters."""

import logging
from collections.abc import Mapping
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

logger = logging.getLogger(__name__)


def build_target_url(base_url: str, params: Mapping[str, str]) -> str:
    """Append validated parameters to ``base_url``.

    Parameters already present in the base URL are kept; a same-named
    parameter is appended next to them, not overwritten. A base URL that
    does not parse as an absolute URL gets the encoded parameters
    concatenated onto it instead, so a bad config entry never fails the
    request here.
    """
    if not params:
        return base_url

    try:
        parts = urlsplit(base_url)
        if not parts.scheme or not parts.netloc:
            raise ValueError(f"not an absolute URL: {base_url!r}")
        pairs = parse_qsl(parts.query, keep_blank_values=True)
        pairs.extend(params.items())
        return urlunsplit(parts._replace(query=urlencode(pairs)))
    except ValueError as e:
        logger.warning("Could not parse base URL, appending params directly: %s", e)
        separator = "&" if "?" in base_url else "?"
        return f"{base_url}{separator}{urlencode(dict(params))}"
