"""
Food analysis service client.

Sends one AnalysisRequest per call to the configured endpoint and returns an
AnalysisResult. A single attempt is made; there is no retry. Every failure
mode surfaces as an AnalysisError subclass carrying a human-readable cause:

  AnalysisServiceUnavailable   network error or timeout
  AnalysisServiceRejected      non-2xx status, non-JSON body, or no foods array
  ImageTransferNotSupported    inline image on a deployment that sends imageUrl

Wire shape
----------
Which image field is sent is a deployment decision (RelaySettings.image_transfer),
never a per-request guess:

  "url"     {"imageUrl": ...}     - remote URLs only; inline images refused
  "base64"  {"imageBase64": ...}  - remote URLs are downloaded and encoded first
"""

import asyncio
import base64
import json
import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from food_relay.models.analysis import (
    AnalysisRequest,
    AnalysisResult,
    Base64Image,
    ImageReference,
    InlineImageBytes,
    RemoteImageUrl,
)

logger = logging.getLogger(__name__)

DEFAULT_USER_NAME = "User"
DEFAULT_USER_EMAIL = "user@example.com"

# Cap on how much of an error body is kept in the cause string
_MAX_DETAIL_CHARS = 500


class AnalysisError(Exception):
    """Base exception for analysis failures."""

    def __init__(self, message: str, status_code: Optional[int] = None, detail: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.detail = detail

    def describe(self) -> str:
        """Cause string: message, HTTP status when known, and any service error payload."""
        parts = [self.message]
        if self.status_code is not None:
            parts.append(f"(HTTP {self.status_code})")
        if self.detail:
            detail = self.detail if isinstance(self.detail, str) else json.dumps(self.detail)
            parts.append(f"- {detail[:_MAX_DETAIL_CHARS]}")
        return " ".join(parts)


class AnalysisServiceUnavailable(AnalysisError):
    """The service could not be reached or did not answer within the timeout."""


class AnalysisServiceRejected(AnalysisError):
    """The service answered, but not with a usable analysis."""


class ImageTransferNotSupported(AnalysisError):
    """The image reference cannot be expressed in this deployment's wire shape."""


def _error_payload(response: httpx.Response) -> Any:
    """Return the response body as JSON when possible, otherwise as text."""
    try:
        return response.json()
    except ValueError:
        return response.text or None


class AnalysisClient:
    """Async client for the external food analysis service."""

    def __init__(
        self,
        endpoint: str,
        timeout: float = 60.0,
        image_transfer: str = "url",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.endpoint = endpoint
        self.ceiling = timeout
        self.timeout = httpx.Timeout(timeout)
        self.image_transfer = image_transfer
        self._transport = transport

    def _http_client(self) -> httpx.AsyncClient:
        # One client per call: nothing is shared between inbound requests.
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def analyze(
        self,
        image: ImageReference,
        user_name: Optional[str] = None,
        user_email: Optional[str] = None,
    ) -> AnalysisResult:
        """
        Analyse one image.

        Args:
            image: RemoteImageUrl, InlineImageBytes or Base64Image
            user_name: requester display name (defaults to "User")
            user_email: requester email (defaults to "user@example.com")

        The ceiling bounds the whole call, image download included, not just
        each individual read.

        Raises:
            AnalysisError: on any failure (see module docstring)
        """
        try:
            return await asyncio.wait_for(
                self._analyze(image, user_name, user_email), timeout=self.ceiling
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Analysis did not complete within {self.ceiling:g}s")
            raise AnalysisServiceUnavailable(
                f"The analysis service did not respond within {self.ceiling:g} seconds"
            ) from e

    async def _analyze(
        self,
        image: ImageReference,
        user_name: Optional[str],
        user_email: Optional[str],
    ) -> AnalysisResult:
        async with self._http_client() as client:
            request = await self._build_request(client, image, user_name, user_email)
            return await self._post(client, request)

    async def _build_request(
        self,
        client: httpx.AsyncClient,
        image: ImageReference,
        user_name: Optional[str],
        user_email: Optional[str],
    ) -> AnalysisRequest:
        name = user_name or DEFAULT_USER_NAME
        email = user_email or DEFAULT_USER_EMAIL

        if self.image_transfer == "url":
            if not isinstance(image, RemoteImageUrl):
                raise ImageTransferNotSupported(
                    "This relay only forwards image links; file uploads are not enabled"
                )
            return AnalysisRequest(imageUrl=image.url, userName=name, userEmail=email)

        if isinstance(image, Base64Image):
            encoded = image.data
        elif isinstance(image, InlineImageBytes):
            encoded = base64.b64encode(image.content).decode("ascii")
        elif isinstance(image, RemoteImageUrl):
            encoded = base64.b64encode(await self._download(client, image.url)).decode("ascii")
        else:
            raise ImageTransferNotSupported(f"Unsupported image reference: {type(image).__name__}")

        return AnalysisRequest(imageBase64=encoded, userName=name, userEmail=email)

    async def _download(self, client: httpx.AsyncClient, url: str) -> bytes:
        """Fetch a remote image so it can be sent inline."""
        try:
            response = await client.get(url, follow_redirects=True)
        except httpx.TimeoutException as e:
            raise AnalysisServiceUnavailable(f"Timed out downloading the image: {e}") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise AnalysisServiceUnavailable(f"Could not download the image: {e}") from e

        if not response.is_success:
            logger.error(f"Image download failed: HTTP {response.status_code} for {url}")
            raise AnalysisServiceRejected(
                "Could not download the image", status_code=response.status_code
            )
        return response.content

    async def _post(self, client: httpx.AsyncClient, request: AnalysisRequest) -> AnalysisResult:
        logger.info(
            f"Calling analysis service {self.endpoint} "
            f"(transfer={self.image_transfer}, user={request.user_name!r})"
        )
        try:
            response = await client.post(self.endpoint, json=request.to_payload())
        except httpx.TimeoutException as e:
            logger.error(f"Analysis service timed out after {self.ceiling:g}s: {e}")
            raise AnalysisServiceUnavailable(
                f"The analysis service did not respond within {self.ceiling:g} seconds"
            ) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error(f"Analysis service unreachable: {type(e).__name__}: {e}")
            raise AnalysisServiceUnavailable(f"Could not reach the analysis service: {e}") from e

        if not response.is_success:
            detail = _error_payload(response)
            logger.error(
                f"Analysis service returned HTTP {response.status_code}; "
                f"body={detail!r} headers={dict(response.headers)!r}"
            )
            raise AnalysisServiceRejected(
                "The analysis service rejected the request",
                status_code=response.status_code,
                detail=detail,
            )

        try:
            body = response.json()
        except ValueError as e:
            logger.error(f"Analysis service returned non-JSON body: {response.text[:_MAX_DETAIL_CHARS]!r}")
            raise AnalysisServiceRejected(
                "The analysis service returned an unreadable response",
                status_code=response.status_code,
            ) from e

        if not isinstance(body, dict) or not isinstance(body.get("foods"), list):
            logger.error(f"Analysis response is missing the foods array: {body!r}")
            raise AnalysisServiceRejected(
                "The analysis response did not include any foods",
                status_code=response.status_code,
                detail=body.get("error") if isinstance(body, dict) else None,
            )

        try:
            result = AnalysisResult.model_validate(body)
        except ValidationError as e:
            logger.error(f"Analysis response failed validation: {e}")
            raise AnalysisServiceRejected(
                "The analysis response was malformed",
                status_code=response.status_code,
            ) from e

        logger.info(f"Analysis complete: {len(result.foods or [])} food item(s)")
        return result
