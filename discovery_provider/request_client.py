"""Single HTTP requests against a chosen discovery node."""
from __future__ import annotations

import time
import uuid
from typing import Any, Callable, Dict, Optional, Union
from urllib.parse import quote

import httpx
from loguru import logger
from pydantic import ValidationError

from .constants import REQUEST_ID_HEADER, REQUEST_TIMEOUT_MS, USER_ID_HEADER
from .errors import NotFoundError, RequestFailedError
from .models import DiscoveryResponse, RequestDescriptor, RequestEvent

RequestCallback = Callable[[RequestEvent], Any]
IdentityProvider = Callable[[], Optional[Union[str, int]]]

# InvalidURL is not an HTTPError subclass
TRANSPORT_ERRORS = (httpx.HTTPError, httpx.InvalidURL)


def build_url(endpoint: str, descriptor: RequestDescriptor) -> httpx.URL:
    segments = [endpoint.rstrip("/"), descriptor.path]
    segments.extend(quote(str(param).strip("/"), safe="") for param in descriptor.url_params)
    return httpx.URL("/".join(segments), params=descriptor.query_params or None)


def _decode_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


class RequestClient:
    def __init__(
        self,
        timeout_ms: int = REQUEST_TIMEOUT_MS,
        request_callback: Optional[RequestCallback] = None,
        identity_provider: Optional[IdentityProvider] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._timeout_ms = timeout_ms
        self._request_callback = request_callback
        self._identity_provider = identity_provider
        self._http_client = http_client

    def build_headers(self, descriptor: RequestDescriptor) -> Dict[str, str]:
        headers = dict(descriptor.headers)
        if self._identity_provider is not None:
            user_id = self._identity_provider()
            if user_id:
                headers[USER_ID_HEADER] = str(user_id)
        headers[REQUEST_ID_HEADER] = str(uuid.uuid4())
        return headers

    async def perform(self, descriptor: RequestDescriptor, endpoint: str) -> DiscoveryResponse:
        headers = self.build_headers(descriptor)
        timeout_s = (descriptor.timeout_ms or self._timeout_ms) / 1000
        body = descriptor.data if descriptor.method != "GET" else None

        started = time.monotonic()
        url: Optional[httpx.URL] = None
        try:
            url = build_url(endpoint, descriptor)
            if self._http_client is not None:
                response = await self._send(self._http_client, descriptor.method, url, headers, body, timeout_s)
            else:
                async with httpx.AsyncClient() as client:
                    response = await self._send(client, descriptor.method, url, headers, body, timeout_s)
        except TRANSPORT_ERRORS as exc:
            if url is not None:
                self._notify(url, descriptor.method, None, started)
            raise RequestFailedError(
                f"{descriptor.method} {endpoint}/{descriptor.path} failed: {exc!r}", body=exc, endpoint=endpoint
            ) from exc

        if response.status_code >= 400:
            self._notify(url, descriptor.method, response.status_code, started)
            if response.status_code == 404:
                raise NotFoundError(endpoint=endpoint, body=_decode_body(response))
            raise RequestFailedError(
                f"{descriptor.method} {url} returned {response.status_code}",
                status=response.status_code,
                body=_decode_body(response),
                endpoint=endpoint,
            )

        try:
            parsed = DiscoveryResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            self._notify(url, descriptor.method, response.status_code, started)
            raise RequestFailedError(
                f"{descriptor.method} {url} returned an unreadable body",
                status=response.status_code,
                body=response.text,
                endpoint=endpoint,
            ) from exc

        self._notify(
            url,
            descriptor.method,
            response.status_code,
            started,
            signer=parsed.signer,
            signature=parsed.signature,
        )
        return parsed

    @staticmethod
    async def _send(
        client: httpx.AsyncClient,
        method: str,
        url: httpx.URL,
        headers: Dict[str, str],
        body: Optional[Dict[str, Any]],
        timeout_s: float,
    ) -> httpx.Response:
        return await client.request(method, url, headers=headers, json=body, timeout=timeout_s)

    def _notify(
        self,
        url: httpx.URL,
        method: str,
        status: Optional[int],
        started: float,
        signer: Optional[str] = None,
        signature: Optional[str] = None,
    ) -> None:
        if self._request_callback is None:
            return
        port = f":{url.port}" if url.port else ""
        query = url.query.decode("ascii")
        try:
            event = RequestEvent(
                endpoint=f"{url.scheme}://{url.host}{port}",
                pathname=url.path,
                query_string=f"?{query}" if query else "",
                request_method=method,
                status=status,
                response_time_millis=int((time.monotonic() - started) * 1000),
                signer=signer,
                signature=signature,
            )
            self._request_callback(event)
        except Exception:  # noqa: BLE001
            logger.exception(f"request callback failed for {url}")
