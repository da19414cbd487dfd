# src/hotel_booking/services/amadeus_client.py

import logging
import os
import time
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

import requests

logger = logging.getLogger(__name__)


class AmadeusResponseError(requests.HTTPError):
    """
    Non-2xx answer from Amadeus, with the first entry of the
    `errors` array (status/code/title/detail) when the body has one.
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        code: Optional[int] = None,
        title: Optional[str] = None,
        detail: Optional[str] = None,
        response: Optional[requests.Response] = None,
    ):
        super().__init__(message, response=response)
        self.status = status
        self.code = code
        self.title = title
        self.detail = detail

    @classmethod
    def from_response(cls, resp: requests.Response) -> "AmadeusResponseError":
        code = None
        title = None
        detail = None
        try:
            body = resp.json()
        except ValueError:
            body = None
        errors = (body.get("errors") if isinstance(body, dict) else None) or []

        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            first = errors[0]
            code = first.get("code")
            title = first.get("title")
            detail = first.get("detail")

        return cls(
            f"Amadeus request failed: {resp.status_code} {title or ''}".strip(),
            status=resp.status_code,
            code=code,
            title=title,
            detail=detail,
            response=resp,
        )


class AmadeusClient:
    """
    Minimal Amadeus REST client with OAuth2 client-credentials token caching.
    """

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        env: Optional[str] = None,
        timeout_seconds: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ):
        self.client_id = (client_id or os.getenv(
            "AMADEUS_CLIENT_ID", "")).strip()
        self.client_secret = (client_secret or os.getenv(
            "AMADEUS_CLIENT_SECRET", "")).strip()
        self.env = (env or os.getenv("AMADEUS_ENV", "test")).strip().lower()
        self.timeout_seconds = timeout_seconds or int(
            os.getenv("AMADEUS_TIMEOUT_SECONDS", "20"))

        if not self.client_id or not self.client_secret:
            raise ValueError(
                "Missing Amadeus credentials. Set AMADEUS_CLIENT_ID and AMADEUS_CLIENT_SECRET."
            )

        # Base URLs for Self-Service APIs
        self.base_url = (
            "https://test.api.amadeus.com"
            if self.env == "test"
            else "https://api.amadeus.com"
        )

        self.session = session or requests.Session()
        self._access_token: Optional[str] = None
        self._token_expiry_epoch: float = 0.0  # seconds since epoch

    def _token_is_valid(self) -> bool:
        # Refresh 60 seconds early
        return bool(self._access_token) and (time.time() < (self._token_expiry_epoch - 60))

    def _fetch_token(self) -> None:
        url = f"{self.base_url}/v1/security/oauth2/token"
        data = {"grant_type": "client_credentials"}
        headers = {"Content-Type": "application/x-www-form-urlencoded"}

        logger.debug("Requesting Amadeus access token (%s)", self.env)
        # Use HTTP Basic Auth (most reliable for OAuth client_credentials)
        resp = self.session.post(
            url,
            data=data,
            headers=headers,
            auth=(self.client_id, self.client_secret),
            timeout=self.timeout_seconds,
        )

        # Helpful error detail without leaking secrets
        if resp.status_code != 200:
            raise AmadeusResponseError.from_response(resp)

        payload = resp.json()
        self._access_token = payload["access_token"]
        expires_in = int(payload.get("expires_in", 1799))
        self._token_expiry_epoch = time.time() + expires_in

    def _get_auth_header(self) -> Dict[str, str]:
        if not self._token_is_valid():
            self._fetch_token()
        return {"Authorization": f"Bearer {self._access_token}"}

    def _url(self, path: str) -> str:
        # Continuation links come back as absolute URLs; only our own host gets the token
        if path.startswith("http://") or path.startswith("https://"):
            if urlsplit(path)[:2] != urlsplit(self.base_url)[:2]:
                raise requests.exceptions.InvalidURL(f"Refusing to follow a link outside {self.base_url}")
            return path
        return f"{self.base_url}{path}"

    def _send(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        url = self._url(path)
        logger.debug("%s %s", method, url)

        resp = self.session.request(
            method, url, headers=self._get_auth_header(),
            timeout=self.timeout_seconds, **kwargs)

        # If token expired unexpectedly, refresh once and retry
        if resp.status_code == 401:
            logger.debug("Access token rejected, refreshing")
            self._fetch_token()
            resp = self.session.request(
                method, url, headers=self._get_auth_header(),
                timeout=self.timeout_seconds, **kwargs)

        if not 200 <= resp.status_code < 300:
            raise AmadeusResponseError.from_response(resp)
        return resp.json()

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self._send("GET", path, params=params)

    def post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return self._send("POST", path, json=body)
