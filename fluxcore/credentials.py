"""Registry credentials read from a Docker config file."""

from __future__ import annotations

import base64
import binascii
import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional, Union
from urllib.parse import urlsplit

import requests

GCP_DEFAULT_TOKEN_URL = (
    "http://metadata.google.internal/computeMetadata/v1/instance/service-accounts/default/token"
)

_HOST_CHARS = re.compile(r"^[A-Za-z0-9\-._~!$&'()*+,;=:\[\]%]*$")


@dataclass(frozen=True)
class Creds:
    """A username and password for one registry."""

    username: str = ""
    password: str = ""


class Credentials:
    """Credentials for a set of registry hosts."""

    def __init__(self, entries: Optional[Mapping[str, Creds]] = None) -> None:
        self._entries: dict[str, Creds] = dict(entries or {})

    def creds_for(self, host: str) -> Creds:
        """Credentials for a host; gcr.io falls back to a metadata token."""
        found = self._entries.get(host)
        if found is not None:
            return found
        if host == "gcr.io":
            try:
                return get_gcp_oauth_token()
            except (requests.RequestException, RuntimeError, ValueError, KeyError):
                pass
        return Creds()

    def hosts(self) -> list[str]:
        return list(self._entries)


def no_credentials() -> Credentials:
    return Credentials()


def _field(obj: Any, name: str) -> Any:
    if not isinstance(obj, dict):
        return None
    if name in obj:
        return obj[name]
    lowered = name.lower()
    return next((v for k, v in obj.items() if k.lower() == lowered), None)


def _netloc_host(netloc: str) -> str:
    host = netloc.rpartition("@")[2]
    if not _HOST_CHARS.match(host):
        raise ValueError(f"invalid character in host name {host!r}")
    return host


def _registry_host(entry: str) -> str:
    parts = urlsplit(entry)
    path = parts.path
    if parts.scheme and not parts.netloc and path and not path.startswith("/"):
        path = ""  # opaque, as in "host:port" read as scheme:opaque
    host = _netloc_host(parts.netloc)
    if not host and not path:
        raise ValueError("Empty registry auth url")
    if not host:
        host = _netloc_host(urlsplit(f"https://{entry}/").netloc)
        if not host:
            raise ValueError(
                "Invalid registry auth url. Must be a valid http address (e.g. https://gcr.io/v1/)"
            )
    return host


def credentials_from_file(path: Union[str, Path]) -> Credentials:
    """Read registry credentials from a Docker config.json style file."""
    config = json.loads(Path(path).read_text())
    auths = _field(config, "auths") or {}
    if not isinstance(auths, dict):
        raise ValueError("auths must be an object")
    entries: dict[str, Creds] = {}
    for host, entry in auths.items():
        encoded = _field(entry, "auth") or ""
        try:
            decoded = base64.b64decode(encoded, validate=True).decode()
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise ValueError(f"decoding credential for {host}: {exc}") from exc
        parts = decoded.split(":", 1)
        if len(parts) != 2:
            raise ValueError(
                f"decoded credential for {host} has wrong number of fields "
                f"(expected 2, got {len(parts)})"
            )
        entries[_registry_host(host)] = Creds(parts[0], parts[1])
    return Credentials(entries)


def get_gcp_oauth_token() -> Creds:
    """Fetch an access token from the GCP metadata service."""
    response = requests.get(
        GCP_DEFAULT_TOKEN_URL, headers={"Metadata-Flavor": "Google"}, timeout=5
    )
    if response.status_code != 200:
        raise RuntimeError(
            f"unexpected status from metadata service: {response.status_code} {response.reason}"
        )
    token = response.json()
    return Creds("oauth2accesstoken", token["access_token"])