"""URL helpers for the camera source."""

from __future__ import annotations

import re
from urllib.parse import quote, unquote, urlsplit, urlunsplit


def normalize_stream_url(url: str) -> str:
    """Return ``url`` with credentials decoded then re-encoded exactly once.

    Camera passwords frequently contain ``@`` or ``:``; ffmpeg needs them
    percent-encoded. Already encoded credentials are left as they are.
    """
    parts = urlsplit(url)
    if not parts.username and not parts.password:
        return url

    username = unquote(parts.username or "")
    password = unquote(parts.password or "")

    host = parts.hostname or ""
    if parts.port:
        host += f":{parts.port}"

    if username:
        creds = quote(username, safe="")
        if password:
            creds += ":" + quote(password, safe="")
        netloc = f"{creds}@{host}"
    else:
        netloc = host

    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


_CRED_RE = re.compile(r"(?<=://)([^:@\s/]+):([^@/\s]+)@")


def mask_credentials(text: str) -> str:
    """Redact the password of any URL in *text* for safe logging."""

    return _CRED_RE.sub(r"\1:***@", text)


__all__ = ["normalize_stream_url", "mask_credentials"]
