from __future__ import annotations

import json
import urllib.error
import urllib.request
from collections.abc import Mapping
from typing import Any


class HttpError(RuntimeError):
    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


def post_json(
    url: str,
    payload: Mapping[str, Any],
    *,
    headers: Mapping[str, str] | None = None,
    timeout_s: float = 120.0,
) -> bytes:
    """
    POST a JSON body and return the raw response bytes.

    Non-2xx responses and transport failures raise HttpError (never leaks the request headers).
    """
    body = json.dumps(dict(payload)).encode("utf-8")
    hdrs = {"content-type": "application/json", "user-agent": "synclab/1.0"}
    hdrs.update({k.lower(): v for k, v in (headers or {}).items()})
    req = urllib.request.Request(url, data=body, headers=hdrs, method="POST")
    try:
        with urllib.request.urlopen(req, timeout=float(timeout_s)) as resp:  # nosec B310
            return resp.read()
    except urllib.error.HTTPError as ex:
        raise HttpError(f"HTTP {ex.code} from {url}", status=int(ex.code)) from ex
    except (urllib.error.URLError, TimeoutError, OSError) as ex:
        raise HttpError(f"request to {url} failed: {ex}") from ex


def post_json_for_json(
    url: str,
    payload: Mapping[str, Any],
    *,
    headers: Mapping[str, str] | None = None,
    timeout_s: float = 120.0,
) -> Any:
    raw = post_json(url, payload, headers=headers, timeout_s=timeout_s)
    try:
        return json.loads(raw.decode("utf-8") or "null")
    except ValueError as ex:
        raise HttpError(f"invalid JSON from {url}: {ex}") from ex
