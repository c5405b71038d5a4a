"""Response formatting bridge -- maps :class:`httpx.Response` to the output system.

Used by ``offcache fetch`` to show what the manager produced for a
request: the status line goes to stderr, the body to stdout.
"""

from __future__ import annotations

from typing import Any

import httpx

from offcache.output import get_output


def format_intercepted_response(response: httpx.Response, source: str = "") -> None:
    """Print *response* through the global output system.

    Args:
        response: The response returned by the manager.
        source: Optional label (``network``, ``cache``, ``fallback``) added
            to the status line.
    """
    output = get_output()
    status_line = f"HTTP {response.status_code} {response.reason_phrase or ''}".rstrip()
    if source:
        status_line = f"{status_line} ({source})"
    output.info(status_line)

    content_type = response.headers.get("content-type", "text/plain")
    data = extract_response_data(response)
    if data is not None:
        output.format_response(data, content_type)


def extract_response_data(response: httpx.Response) -> Any:
    """Return the body as JSON if it parses, else as text; ``None`` when empty.

    Binary bodies (fonts, images) are summarised rather than decoded.
    """
    if not response.content:
        return None

    content_type = response.headers.get("content-type", "")
    if content_type.startswith(("font/", "image/", "application/octet-stream")):
        return f"<{len(response.content)} bytes of {content_type}>"

    try:
        return response.json()
    except ValueError:
        pass
    return response.text
