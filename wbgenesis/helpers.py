"""General helpers: HTTP requests, JWT headers, files on disk and JSON maps."""

from __future__ import annotations

import base64
import copy
import json
import logging
import os
import shutil
import urllib.error
import urllib.request
import uuid
from pathlib import Path
from typing import Any, Iterable, Mapping

from wbgenesis.config import TRACE

logger = logging.getLogger(__name__)


class HTTPRequestError(Exception):
    """Raised when an HTTP request answers with a non-success status.

    The message is the body of the response.
    """

    def __init__(self, message: str, status: int):
        super().__init__(message)
        self.status = status


def log_error(err: BaseException | None) -> BaseException | None:
    """Log the error with the caller's location and hand it back; None passes through."""
    if err is None:
        return None
    logger.error("%s", err, stacklevel=2)
    return err


def _send(method: str, url: str, body: str, headers: Mapping[str, str] | None = None) -> bytes:
    data = body.encode("utf-8") if body else None
    request = urllib.request.Request(url, data=data, method=method, headers=dict(headers or {}))
    try:
        with urllib.request.urlopen(request) as response:
            return response.read()
    except urllib.error.HTTPError as err:
        with err:
            payload = err.read()
        raise HTTPRequestError(payload.decode("utf-8", "replace"), err.code) from None
    except OSError as err:
        log_error(err)
        raise


def http_request(method: str, url: str, body: str = "") -> bytes:
    """Send an HTTP request and return the response body.

    Raises HTTPRequestError on a non-2xx status and OSError when the request fails.
    """
    logger.log(TRACE, "sending an http request: %s %s %r", method, url, body)
    return _send(method, url, body)


def jwt_http_request(method: str, url: str, jwt: str, body: str = "") -> str:
    """Send a JSON request authorised with the given bearer JWT and return the body as text."""
    logger.log(TRACE, "sending an http request with a jwt: %s %s %r", method, url, body)
    headers = {"Content-Type": "application/json", "Authorization": f"Bearer {jwt}"}
    return _send(method, url, body, headers).decode("utf-8", "replace")


def extract_jwt(headers: Mapping[str, str]) -> str:
    """Return the JWT from an Authorization header of the form "<scheme> <jwt>".

    Raises ValueError when the header is missing or malformed.
    """
    token = headers.get("Authorization")
    if token is None:
        token = next(
            (value for key, value in headers.items() if key.lower() == "authorization"), ""
        )
    if not token:
        raise ValueError("missing JWT in authorization header")
    parts = token.split(" ")
    if len(parts) < 2:
        raise ValueError("invalid auth header")
    return parts[1]


def get_kid_from_jwt(jwt: str) -> str:
    """Return the "kid" field from the header of a JWT.

    Raises ValueError when the header cannot be decoded or has no string kid.
    """
    if not jwt:
        raise ValueError("given empty string for JWT")
    header_b64 = jwt.split(".")[0]
    try:
        header = json.loads(base64.b64decode(header_b64, validate=True))
    except ValueError as err:
        log_error(err)
        raise
    if header is None:
        header = {}
    if not isinstance(header, dict):
        raise ValueError("JWT header is not a JSON object")
    if "kid" not in header:
        raise ValueError("JWT does not have kid in header")
    kid = header["kid"]
    if not isinstance(kid, str):
        raise ValueError("kid is not string as expected")
    return kid


def get_uuid_string() -> str:
    """Generate a new random UUID as text."""
    return str(uuid.uuid4())


def rm(*directories: str) -> None:
    """Remove every given file or directory tree; missing paths are ignored."""
    for directory in directories:
        if not directory:
            continue
        logger.info("removing directory %s", directory)
        path = Path(directory)
        try:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            elif path.exists() or path.is_symlink():
                path.unlink()
        except OSError as err:
            log_error(err)
            raise


def lsr(directory: str) -> list[str]:
    """List every file below a directory, recursively, in name order."""
    if not directory:
        raise ValueError("directory cannot be empty")
    prefix = directory if directory.endswith("/") else directory + "/"
    try:
        with os.scandir(prefix) as listing:
            entries = sorted(listing, key=lambda entry: entry.name)
    except OSError as err:
        log_error(err)
        raise
    out: list[str] = []
    for entry in entries:
        if entry.is_dir(follow_symlinks=False):
            out.extend(lsr(f"{prefix}{entry.name}/"))
        else:
            out.append(f"{prefix}{entry.name}")
    return out


def combine_config(entries: Iterable[str]) -> str:
    """Join the entries into lines, each ending with a newline."""
    return "".join(f"{entry}\n" for entry in entries)


def get_path(path: str) -> str:
    """Return the path when it has a directory part; raise ValueError otherwise."""
    if "/" in path:
        return path
    raise ValueError(f"{path!r} has no directory component")


def get_json_int(data: Mapping[str, Any], field: str) -> int | None:
    """Return data[field] as an integer, or None when it is absent or null.

    Raises TypeError for a non-numeric value and ValueError for a non-integral number.
    """
    value = data.get(field)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"incorrect type for {field}")
    if isinstance(value, float):
        raise ValueError(f"{field} is not an integer: {value!r}")
    return value


def get_json_string(data: Mapping[str, Any], field: str) -> str | None:
    """Return data[field] as a string, or None when it is absent or null.

    Raises TypeError when the value is not a string.
    """
    value = data.get(field)
    if value is None:
        return None
    if not isinstance(value, str):
        raise TypeError(f"incorrect type for {field}")
    return value


def merge_string_maps(m1: Mapping[str, Any], m2: Mapping[str, Any]) -> dict[str, Any]:
    """Merge two maps into a new one; on conflicting keys the value from m2 wins."""
    return {**m1, **m2}


def convert_to_string_map(data: Mapping[str, Any]) -> dict[str, str]:
    """Map every value to its JSON text; a value that cannot be encoded becomes ""."""
    out = {}
    for key, value in data.items():
        try:
            out[key] = json.dumps(
                value, separators=(",", ":"), sort_keys=True, ensure_ascii=False, allow_nan=False
            )
        except (TypeError, ValueError):
            out[key] = ""
    return out


def format_error(res: str, err: BaseException | str) -> str:
    """Build the standard message for a failed command: its output, then the error."""
    return f"{res}\n{err}"


def copy_map(data: Mapping[str, Any]) -> dict[str, Any]:
    """Deep copy a JSON-compatible map. Raises TypeError for values JSON cannot hold."""
    try:
        return json.loads(json.dumps(copy.copy(dict(data))))
    except (TypeError, ValueError) as err:
        log_error(err)
        raise