from __future__ import annotations

import json

import httpx
from pydantic import ValidationError

from .api_models import ConvergeRequest
from .errors import SourceError


def _is_url(source: str) -> bool:
    return source.startswith("http://") or source.startswith("https://")


def _fetch(url: str, timeout_s: float) -> object:
    try:
        with httpx.Client(timeout=timeout_s, follow_redirects=False) as client:
            resp = client.get(url)
    except httpx.HTTPError as e:
        raise SourceError(f"Could not fetch desired state from {url}: {type(e).__name__}: {e}") from e
    if resp.status_code != 200:
        raise SourceError(f"Desired state source {url} answered HTTP {resp.status_code}")
    try:
        return resp.json()
    except ValueError as e:
        raise SourceError(f"Desired state from {url} is not valid JSON") from e


def _read(path: str) -> object:
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except OSError as e:
        raise SourceError(f"Could not read desired state file {path}: {e}") from e
    except ValueError as e:
        raise SourceError(f"Desired state file {path} is not valid JSON: {e}") from e


def load_desired(source: str, timeout_s: float = 10.0) -> ConvergeRequest:
    """Load the desired state document from a JSON file or an HTTP(S) URL.

    Expected JSON:
      {"haproxy": {"template": "...", "certs": {...}, "files": {...}} | null,
       "services": {"web": {"10.0.0.1:80": {"revision": "...", "availability_zone": "..."}}},
       "availability_zone": "..."}
    """
    if not source:
        raise SourceError("No desired state source configured (LBC_SOURCE)")
    raw = _fetch(source, timeout_s) if _is_url(source) else _read(source)
    try:
        return ConvergeRequest.model_validate(raw)
    except ValidationError as e:
        raise SourceError(f"Desired state from {source} is invalid: {e}") from e
