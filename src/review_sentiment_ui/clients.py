"""HTTP collaborators of the review session: where the TSV comes from and where
reviews are sent for classification.

Both talk to the outside world with httpx. They know nothing about corpora or
UI state; they only turn transport outcomes into the error taxonomy defined in
``session.py``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import httpx

from review_sentiment_ui.session import (
    AnalysisError,
    AnalysisErrorKind,
    LoadError,
    LoadErrorKind,
)

logger = logging.getLogger(__name__)


def _is_url(path: str) -> bool:
    return path.startswith("http://") or path.startswith("https://")


class DatasetSource:
    """Returns the raw text of a TSV given a path.

    Parameters
    ----------
    timeout : float | None
        Timeout for remote fetches. ``None`` waits indefinitely.
    transport : httpx.AsyncBaseTransport | None
        Optional transport, e.g. ``httpx.MockTransport`` in tests.

    Notes
    -----
    ``http://`` and ``https://`` paths are fetched with a GET; anything else is
    read from the local filesystem. Both count as "the fetch was unsuccessful"
    when they fail, so both raise ``LoadError(NOT_FOUND)``.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout = timeout
        self.transport = transport

    async def fetch(self, path: str) -> str:
        if not _is_url(path):
            try:
                return Path(path).read_text(encoding="utf-8")
            except OSError as e:
                raise LoadError(
                    LoadErrorKind.NOT_FOUND,
                    f"Failed to fetch {path}: {type(e).__name__}: {e}",
                ) from e

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                r = await client.get(path)
        except httpx.RequestError as e:
            raise LoadError(
                LoadErrorKind.NOT_FOUND,
                f"Failed to fetch {path}: {type(e).__name__}: {e}",
            ) from e

        if not r.is_success:
            raise LoadError(
                LoadErrorKind.NOT_FOUND,
                f"Failed to fetch {path}: {r.status_code} {r.reason_phrase}",
            )
        return r.text


class ClassifierClient:
    """Client for a text-classification endpoint speaking the Inference API format.

    Parameters
    ----------
    model_url : str
        Full URL to POST to, e.g.
        "https://api-inference.huggingface.co/models/siebert/sentiment-roberta-large-english".
    timeout : float | None
        Request timeout in seconds. ``None`` waits indefinitely.
    transport : httpx.AsyncBaseTransport | None
        Optional transport, e.g. ``httpx.MockTransport`` in tests.
    """

    def __init__(
        self,
        model_url: str,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.model_url = model_url
        self.timeout = timeout
        self.transport = transport

    async def classify(self, text: str, auth_token: Optional[str] = None) -> Any:
        """POST ``{"inputs": text}`` and return the decoded JSON body.

        Raises
        ------
        AnalysisError
            ``AUTH_FAILED`` on 401/403, ``RATE_LIMITED`` on 429,
            ``SERVICE_ERROR`` on any other non-2xx, ``NETWORK_FAILURE`` when the
            service cannot be reached, ``UNEXPECTED_SHAPE`` when a 2xx body is
            not JSON.
        """
        headers: Dict[str, str] = {"Content-Type": "application/json"}
        token = (auth_token or "").strip()
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                r = await client.post(self.model_url, json={"inputs": text}, headers=headers)
        except httpx.RequestError as e:
            raise AnalysisError(
                AnalysisErrorKind.NETWORK_FAILURE,
                f"Could not reach the classification service. Details: {type(e).__name__}: {e}",
            ) from e

        if r.status_code in (401, 403):
            raise AnalysisError(
                AnalysisErrorKind.AUTH_FAILED,
                f"Authentication failed (status {r.status_code}). "
                "Check your token or try without a token for the free tier.",
            )
        if r.status_code == 429:
            raise AnalysisError(
                AnalysisErrorKind.RATE_LIMITED,
                "Rate limit or model busy (429). "
                "Try again later or provide a token with higher rate limits.",
            )
        if not r.is_success:
            detail = f"{r.status_code} {r.reason_phrase}"
            try:
                body = r.json()
            except ValueError:
                body = None
            if isinstance(body, dict) and body.get("error"):
                detail += f" - {body['error']}"
            raise AnalysisError(AnalysisErrorKind.SERVICE_ERROR, f"API error: {detail}", detail=detail)

        try:
            return r.json()
        except ValueError as e:
            logger.debug("Non-JSON body from %s: %r", self.model_url, r.text[:200])
            raise AnalysisError(
                AnalysisErrorKind.UNEXPECTED_SHAPE,
                "Unexpected API response format: body is not JSON.",
            ) from e
