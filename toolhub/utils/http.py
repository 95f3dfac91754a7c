from __future__ import annotations

from typing import Tuple

from httpx import Response


def extract_http_error(response: Response | None, *, default_message: str = "Upstream request failed", default_code: str = "upstream_error") -> Tuple[str, str]:
    """Return a tuple of (message, code) derived from an upstream API response.

    Understands the GitHub (``{"message": ...}``) and Figma
    (``{"err": ..., "status": ...}``) error payloads as well as the
    generic ``{"error": {...}}`` / ``{"detail": ...}`` shapes.
    """
    message = default_message
    code = default_code

    if response is None:
        return message, code

    try:
        data = response.json()
    except ValueError:
        text = (response.text or "").strip()
        if text:
            message = text
        return message, code

    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict):
            message = str(error.get("message") or message)
            code = str(error.get("code") or code)
            return message, code
        if isinstance(error, str) and error:
            return error, code

        err = data.get("err")
        if err:
            return str(err), code

        gh_message = data.get("message")
        if isinstance(gh_message, str) and gh_message:
            return gh_message, code

        detail = data.get("detail")
        if isinstance(detail, str):
            return detail, code

    text = str(data)
    if text:
        message = text
    return message, code
