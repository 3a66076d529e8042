"""
State Codec
===========
Converts an authentication snapshot to and from its transportable form.

The encoded form is base64 of the JSON that Playwright's
``BrowserContext.storage_state()`` returns::

    {"cookies": [{"name", "value", "domain", "path", "expires",
                  "httpOnly", "secure", "sameSite"}, ...],
     "origins": [{"origin": "https://...",
                  "localStorage": [{"name": k, "value": v}, ...]}, ...]}

so an encoded snapshot can also be handed to ``browser.new_context(
storage_state=...)`` after decoding.

Decoding validates the shape into frozen dataclasses; nothing downstream
trusts raw dict keys.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from ..errors import SnapshotDecodeError

logger = logging.getLogger(__name__)

_SAME_SITE_VALUES = ("Strict", "Lax", "None")


def host_matches(host: Optional[str], domain: str) -> bool:
    """True if *host* is *domain* or a subdomain of it.

    A leading dot (cookie domain syntax) is ignored on both sides.
    """
    host = (host or "").lower().lstrip(".")
    domain = (domain or "").lower().lstrip(".")
    if not host or not domain:
        return False
    return host == domain or host.endswith("." + domain)


# ---------------------------------------------------------------------------
# Snapshot data model
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SnapshotCookie:
    name: str
    value: str
    domain: str
    path: str
    expires: Optional[float] = None
    http_only: Optional[bool] = None
    secure: Optional[bool] = None
    same_site: Optional[str] = None

    @property
    def identity(self) -> Tuple[str, str, str]:
        return (self.name, self.domain, self.path)

    def to_state(self) -> Dict[str, Any]:
        """Playwright cookie dict (usable with ``add_cookies``)."""
        data: Dict[str, Any] = {
            "name": self.name,
            "value": self.value,
            "domain": self.domain,
            "path": self.path,
        }
        if self.expires is not None:
            data["expires"] = self.expires
        if self.http_only is not None:
            data["httpOnly"] = self.http_only
        if self.secure is not None:
            data["secure"] = self.secure
        if self.same_site is not None:
            data["sameSite"] = self.same_site
        return data


@dataclass(frozen=True)
class StorageEntry:
    key: str
    value: str


@dataclass(frozen=True)
class OriginStorage:
    origin: str
    local_storage: Tuple[StorageEntry, ...] = ()

    def to_state(self) -> Dict[str, Any]:
        return {
            "origin": self.origin,
            "localStorage": [
                {"name": e.key, "value": e.value} for e in self.local_storage
            ],
        }


@dataclass(frozen=True)
class AuthSnapshot:
    """Immutable point-in-time capture of browser auth material."""

    cookies: Tuple[SnapshotCookie, ...] = ()
    origins: Tuple[OriginStorage, ...] = ()

    @classmethod
    def from_state(cls, state: Any) -> "AuthSnapshot":
        """Validate a storage-state dict and build a snapshot.

        Raises:
            SnapshotDecodeError: on any shape violation.
        """
        if not isinstance(state, dict):
            raise SnapshotDecodeError(
                f"Snapshot must be a JSON object, got {type(state).__name__}"
            )

        raw_cookies = state.get("cookies", [])
        raw_origins = state.get("origins", [])
        if not isinstance(raw_cookies, list):
            raise SnapshotDecodeError("Snapshot 'cookies' must be a list")
        if not isinstance(raw_origins, list):
            raise SnapshotDecodeError("Snapshot 'origins' must be a list")

        # Later duplicates of (name, domain, path) overwrite in place
        cookies: Dict[Tuple[str, str, str], SnapshotCookie] = {}
        for index, raw in enumerate(raw_cookies):
            cookie = _parse_cookie(raw, index)
            cookies[cookie.identity] = cookie

        origins = tuple(
            _parse_origin(raw, index) for index, raw in enumerate(raw_origins)
        )
        return cls(cookies=tuple(cookies.values()), origins=origins)

    def to_state(self) -> Dict[str, Any]:
        return {
            "cookies": [c.to_state() for c in self.cookies],
            "origins": [o.to_state() for o in self.origins],
        }

    def cookies_for(self, domains: Iterable[str]) -> List[Dict[str, Any]]:
        """Cookies set for one of *domains* or a subdomain of it."""
        domains = [d for d in domains if d]
        return [
            c.to_state()
            for c in self.cookies
            if any(host_matches(c.domain, d) for d in domains)
        ]


# ---------------------------------------------------------------------------
# Shape validation helpers
# ---------------------------------------------------------------------------

def _require_str(raw: Dict[str, Any], key: str, where: str) -> str:
    value = raw.get(key)
    if not isinstance(value, str):
        raise SnapshotDecodeError(f"{where}: '{key}' must be a string")
    return value


def _optional(raw: Dict[str, Any], key: str, types: tuple, where: str):
    value = raw.get(key)
    if value is None:
        return None
    # bool is an int subclass; keep it out of numeric fields
    if isinstance(value, bool) and bool not in types:
        raise SnapshotDecodeError(f"{where}: '{key}' has invalid type")
    if not isinstance(value, types):
        raise SnapshotDecodeError(f"{where}: '{key}' has invalid type")
    return value


def _parse_cookie(raw: Any, index: int) -> SnapshotCookie:
    where = f"cookies[{index}]"
    if not isinstance(raw, dict):
        raise SnapshotDecodeError(f"{where}: must be an object")

    same_site = _optional(raw, "sameSite", (str,), where)
    if same_site is not None and same_site not in _SAME_SITE_VALUES:
        raise SnapshotDecodeError(f"{where}: unknown sameSite '{same_site}'")

    return SnapshotCookie(
        name=_require_str(raw, "name", where),
        value=_require_str(raw, "value", where),
        domain=_require_str(raw, "domain", where),
        path=_require_str(raw, "path", where),
        expires=_optional(raw, "expires", (int, float), where),
        http_only=_optional(raw, "httpOnly", (bool,), where),
        secure=_optional(raw, "secure", (bool,), where),
        same_site=same_site,
    )


def _parse_origin(raw: Any, index: int) -> OriginStorage:
    where = f"origins[{index}]"
    if not isinstance(raw, dict):
        raise SnapshotDecodeError(f"{where}: must be an object")
    origin = _require_str(raw, "origin", where)

    entries = raw.get("localStorage", [])
    if not isinstance(entries, list):
        raise SnapshotDecodeError(f"{where}: 'localStorage' must be a list")

    parsed = []
    for pos, entry in enumerate(entries):
        entry_where = f"{where}.localStorage[{pos}]"
        if not isinstance(entry, dict):
            raise SnapshotDecodeError(f"{entry_where}: must be an object")
        parsed.append(StorageEntry(
            key=_require_str(entry, "name", entry_where),
            value=_require_str(entry, "value", entry_where),
        ))
    return OriginStorage(origin=origin, local_storage=tuple(parsed))


# ---------------------------------------------------------------------------
# Public codec API
# ---------------------------------------------------------------------------

def decode(encoded: Optional[str]) -> Optional[AuthSnapshot]:
    """Decode a persisted snapshot string.

    Returns ``None`` when *encoded* is absent or blank (no cached snapshot).

    Raises:
        SnapshotDecodeError: if the string is not base64 JSON of the
            expected shape.  This is a configuration problem, so it is
            never folded into "no snapshot".
    """
    if not encoded or not encoded.strip():
        return None

    try:
        raw = base64.b64decode(encoded.strip(), validate=True)
        state = json.loads(raw.decode("utf-8"))
    except (binascii.Error, ValueError) as exc:
        raise SnapshotDecodeError(f"Cached auth state is not base64 JSON: {exc}") from exc

    snapshot = AuthSnapshot.from_state(state)
    logger.debug(
        f"[CODEC] Decoded snapshot: {len(snapshot.cookies)} cookies, "
        f"{len(snapshot.origins)} origins"
    )
    return snapshot


def encode(state: Union[AuthSnapshot, Dict[str, Any]]) -> str:
    """Encode live context state (or a snapshot) as a base64 string.

    Accepts the dict returned by ``BrowserContext.storage_state()``; it is
    validated through ``AuthSnapshot`` first so only well-formed material is
    ever persisted.
    """
    snapshot = state if isinstance(state, AuthSnapshot) else AuthSnapshot.from_state(state)
    payload = json.dumps(snapshot.to_state(), separators=(",", ":"))
    return base64.b64encode(payload.encode("utf-8")).decode("ascii")
