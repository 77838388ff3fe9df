"""
SailingLoc Client Response Decoding

Turns successful HTTP responses into result envelopes. Malformed bodies
never fail the call: a JSON body that does not parse is returned as text.
"""

import json
import re
from typing import Any, Optional
from urllib.parse import unquote

import httpx

from .types import ApiResponse, DownloadResult


_FILENAME_EXT_RE = re.compile(r"filename\*\s*=\s*([^;]+)", re.IGNORECASE)
_FILENAME_RE = re.compile(r'filename\s*=\s*(?:"((?:[^"\\]|\\.)*)"|([^;]+))', re.IGNORECASE)


def is_json_content_type(content_type: str) -> bool:
    """True for ``application/json`` and ``+json`` media types."""
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")


def decode_body(text: str, content_type: str) -> Any:
    """
    Decode a response body by its declared content type.

    Empty or whitespace-only bodies decode to None.
    """
    if not text or not text.strip():
        return None
    if is_json_content_type(content_type):
        try:
            return json.loads(text)
        except ValueError:
            return text
    return text


def decode_response(response: httpx.Response) -> ApiResponse[Any]:
    """Build the success envelope for a 2xx response."""
    content_type = response.headers.get("content-type", "")
    try:
        text = response.text
    except UnicodeDecodeError:
        return ApiResponse.success(None, response.status_code)
    return ApiResponse.success(decode_body(text, content_type), response.status_code)


def parse_content_disposition(value: Optional[str]) -> Optional[str]:
    """
    Recover the filename from a Content-Disposition header.

    Prefers the RFC 5987 ``filename*=charset''value`` form over ``filename=``.
    """
    if not value:
        return None

    match = _FILENAME_EXT_RE.search(value)
    if match:
        raw = match.group(1).strip().strip('"')
        charset, sep, rest = raw.partition("''")
        if sep:
            try:
                return unquote(rest, encoding=charset or "utf-8")
            except LookupError:
                return unquote(rest)
        return unquote(raw)

    match = _FILENAME_RE.search(value)
    if not match:
        return None
    if match.group(1) is not None:
        return re.sub(r"\\(.)", r"\1", match.group(1))
    return match.group(2).strip() or None


def decode_download(response: httpx.Response) -> ApiResponse[DownloadResult]:
    """Build the success envelope for a binary download."""
    disposition = response.headers.get("content-disposition")
    result = DownloadResult(
        content=response.content,
        content_type=response.headers.get("content-type"),
        filename=disposition,
        parsed_filename=parse_content_disposition(disposition),
    )
    return ApiResponse.success(result, response.status_code)
