"""Managing deploy keys on GitHub repositories."""

from __future__ import annotations

from typing import Any, Optional, Union
from urllib.parse import quote

import requests

from .apierror import APIError

DEFAULT_BASE_URL = "https://api.github.com"
DEPLOY_KEY_NAME = "flux-generated"

_UNAUTHORIZED = "Unable to list deploy keys. Permission denied. Check user token."
_NOT_FOUND = "Cannot find owner or repository. Check spelling."
_GENERIC = "Unable to perform GH action. Check error message."


def parse_error(status_code: int, status: str, err: Union[BaseException, str]) -> APIError:
    """Turn a failed GitHub call into an APIError with a helpful body."""
    if status_code == 401:
        return APIError(status_code, status, _UNAUTHORIZED)
    if status_code == 404:
        return APIError(status_code, status, _NOT_FOUND)
    return APIError(status_code, status, f"{_GENERIC} - {err}")


class GithubClient:
    """A GitHub API client authenticated with an OAuth token."""

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_BASE_URL,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers["Authorization"] = f"Bearer {token}"
        self._session.headers["Accept"] = "application/vnd.github.v3+json"

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        url = f"{self._base_url}{path}"
        try:
            response = self._session.request(method, url, timeout=self._timeout, **kwargs)
        except requests.RequestException as exc:
            raise parse_error(0, "", exc) from exc
        if not response.ok:
            status = f"{response.status_code} {response.reason}"
            detail = f"{method} {url}: {status} {response.text.strip()}"
            raise parse_error(response.status_code, status, detail)
        return response

    def insert_deploy_key(self, owner: str, repo: str, deploy_key: str) -> None:
        """Install a deploy key, replacing an earlier one with the same name."""
        keys_path = f"/repos/{quote(owner, safe='')}/{quote(repo, safe='')}/keys"
        keys = self._request("GET", keys_path).json() or []
        for key in keys:
            if key.get("title") == DEPLOY_KEY_NAME:
                self._request("DELETE", f"{keys_path}/{key['id']}")
                break
        self._request("POST", keys_path, json={"title": DEPLOY_KEY_NAME, "key": deploy_key})