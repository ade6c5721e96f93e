"""
HTTP Signaling Transport

Request/response signaling against the HTTP controller:

    POST /offer/{role}            {sessionId, sdp}                          -> {sessionId, sdp}
    POST /candidate/{role}        {sessionId, candidate, sdpMid, sdpMLineIndex}
    GET  /candidate/poll          ?sessionId=...&role=...                   -> [{candidate, sdpMid, sdpMLineIndex}]
    POST /state/{role}            {sessionId, state}
    POST /close/{role}            {sessionId}

Only poll delivery is available over plain request/response.
"""

import json
import ssl
from typing import List, Optional, Tuple

import aiohttp

from tools.http_session import get_client_session
from tools.logger import log_debug
from use_cases.signaling import Role, TransportError, error_from_response

from .base import SignalingTransport


class HttpSignalingTransport(SignalingTransport):

    def __init__(
        self,
        base_url: str,
        session: Optional[aiohttp.ClientSession] = None,
        ssl_context: Optional[ssl.SSLContext] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.base_url = base_url.rstrip("/")
        self._session = session
        self._ssl_context = ssl_context
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = get_client_session(self._ssl_context)
        return self._session

    async def _request(self, method: str, path: str, session_id: Optional[str], **kwargs):
        url = f"{self.base_url}{path}"
        log_debug(f"{method} {url}")

        async def send():
            async with self._get_session().request(method, url, **kwargs) as response:
                text = await response.text()
                try:
                    body = json.loads(text) if text else {}
                except json.JSONDecodeError:
                    body = {"error": text}
                if response.status >= 400:
                    if not isinstance(body, dict):
                        body = {"error": str(body)}
                    body.setdefault("error", f"HTTP {response.status}")
                    raise error_from_response(body)
                return body

        try:
            return await self._bounded(send(), f"{method} {path}", session_id)
        except aiohttp.ClientError as e:
            raise TransportError(f"{method} {path} failed: {e}", session_id=session_id)

    async def send_offer(self, session_id: Optional[str], role, sdp: str) -> Tuple[str, str]:
        role = Role(role)
        body = {"sdp": sdp}
        if session_id:
            body["sessionId"] = session_id
        response = await self._request("POST", f"/offer/{role.value}", session_id, json=body)
        return response.get("sessionId", session_id), response["sdp"]

    async def send_candidate(self, session_id: str, role, payload: dict) -> None:
        role = Role(role)
        await self._request(
            "POST",
            f"/candidate/{role.value}",
            session_id,
            json={"sessionId": session_id, **payload},
        )

    async def poll_candidates(self, session_id: str, role) -> List[dict]:
        role = Role(role)
        response = await self._request(
            "GET",
            "/candidate/poll",
            session_id,
            params={"sessionId": session_id, "role": role.value},
        )
        if not isinstance(response, list):
            raise TransportError(f"Unexpected poll response: {response!r}", session_id=session_id)
        return response

    async def report_state(self, session_id: str, role, state: str) -> None:
        role = Role(role)
        await self._request(
            "POST", f"/state/{role.value}", session_id, json={"sessionId": session_id, "state": state}
        )

    async def close_session(self, session_id: str, role) -> None:
        role = Role(role)
        await self._request("POST", f"/close/{role.value}", session_id, json={"sessionId": session_id})

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
