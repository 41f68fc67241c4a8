# utils/strings.py
from __future__ import annotations
import re
from urllib.parse import urlsplit

_decoration_re = re.compile(r"""^[\s"',]+|[\s"',]+$""")
_hostname_re = re.compile(r"^[a-z0-9-]+(\.[a-z0-9-]+)+$", flags=re.IGNORECASE)


def strip_decoration(s: str | None) -> str:
    """
    Trim the quote/comma noise left around a value scraped from a config line:
      '"s3cr3t",'  -> 's3cr3t'
      "'campus.example.com'" -> 'campus.example.com'
    """
    if not s:
        return ""
    return _decoration_re.sub("", s)


def bare_hostname(s: str | None) -> str:
    """
    Reduce an LMS base setting to a bare host.domain:
      - strip quotes/commas
      - drop any scheme, path, query and port
      - lowercase
    Returns "" when what is left is not shaped like host.domain.
    """
    raw = strip_decoration(s)
    if not raw:
        return ""

    # urlsplit only finds the netloc when a scheme (or //) is present
    parts = urlsplit(raw if "//" in raw else f"//{raw}")
    host = (parts.hostname or "").strip(".").lower()

    return host if _hostname_re.match(host) else ""
