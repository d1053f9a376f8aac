from __future__ import annotations

import json
import logging
from http import HTTPStatus
from typing import Any, Optional

import aiohttp

from onboarder.services.config import GcpConfig


logger = logging.getLogger(__name__)


class GcpServiceError(RuntimeError):
    def __init__(self, message: str, *, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class GcpRestClient:
    """Minimal Google Cloud REST client using bearer-token auth.

    The access token is passed on every call and never stored on the client, so a
    single instance can serve requests from different users.
    """

    def __init__(self, config: GcpConfig, *, session: aiohttp.ClientSession) -> None:
        self._config = config
        self._session = session

    async def _authorized_request(
        self,
        *,
        method: str,
        url: str,
        token: str,
        body: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, str]] = None,
    ) -> tuple[int, bytes]:
        if not token:
            raise GcpServiceError("No access token available for Google Cloud request")

        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }
        data: Optional[bytes] = None
        if body is not None:
            headers["Content-Type"] = "application/json"
            data = json.dumps(body).encode("utf-8")

        try:
            async with self._session.request(
                method.upper(),
                url,
                data=data,
                params=params,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self._config.timeout_seconds),
            ) as resp:
                return (resp.status, await resp.read())
        except Exception as exc:
            logger.exception("Google Cloud request failed (method=%s url=%s)", method, url)
            raise GcpServiceError("Google Cloud request failed") from exc

    async def _request_json(
        self,
        *,
        method: str,
        url: str,
        token: str,
        action: str,
        body: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, str]] = None,
    ) -> dict[str, Any]:
        """Perform a request and return the parsed JSON body, raising on non-2xx."""

        status, payload = await self._authorized_request(method=method, url=url, token=token, body=body, params=params)
        if not HTTPStatus.OK <= status < HTTPStatus.MULTIPLE_CHOICES:
            raise GcpServiceError(
                f"Failed to {action}: HTTP {status} {self._details(payload)}".strip(),
                status=status,
            )
        return self._parse(payload)

    @staticmethod
    def _details(payload: bytes) -> str:
        return payload.decode("utf-8", errors="replace") if payload else ""

    @staticmethod
    def _parse(payload: bytes) -> dict[str, Any]:
        if not payload:
            return {}
        try:
            parsed = json.loads(payload.decode("utf-8"))
        except Exception:
            return {}
        return parsed if isinstance(parsed, dict) else {}
