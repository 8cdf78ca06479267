import asyncio
import logging
import re
from urllib.parse import urlparse

import httpx

from ..enums import DeckType
from .evidence import DeckEvidence
from .http import ClientFactory, default_client_factory, describe_error, read_capped_text

logger = logging.getLogger(__name__)

MAX_DECK_TEXT_BYTES = 5_000
DOCUMENT_ID_PATTERN = re.compile(r"/d/([a-zA-Z0-9_-]+)")

DOCUMENT_EXPORT_URL = "https://docs.google.com/document/d/{doc_id}/export?format=txt"
PRESENTATION_EXPORT_URL = "https://docs.google.com/presentation/d/{doc_id}/export/txt"


def detect_deck_type(url: str) -> DeckType:
    lowered = url.lower()
    if "slides.google.com" in lowered or "docs.google.com/presentation" in lowered:
        return DeckType.SLIDES
    if "docs.google.com" in lowered or "drive.google.com" in lowered:
        return DeckType.GOOGLE_DOCS
    if urlparse(lowered).path.endswith(".pdf") or ".pdf" in lowered:
        return DeckType.PDF
    return DeckType.OTHER


class PitchDeckFetcher:
    def __init__(
        self,
        *,
        timeout: float = 15.0,
        user_agent: str = "HackJudge-Bot/1.0",
        max_text_bytes: int = MAX_DECK_TEXT_BYTES,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self.timeout = timeout
        self.max_text_bytes = max_text_bytes
        self.client_factory = client_factory or default_client_factory(user_agent, timeout)

    async def fetch(self, deck_url: str) -> DeckEvidence:
        deck_type = detect_deck_type(deck_url)
        logger.info("Fetching pitch deck evidence for %s (type=%s)", deck_url, deck_type.value)
        try:
            async with self.client_factory() as client:
                return await asyncio.wait_for(self._analyze(client, deck_url, deck_type), self.timeout)
        except asyncio.TimeoutError:
            error = f"Timeout (>{self.timeout:g}s)"
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            error = describe_error(exc)
        logger.warning("Pitch deck fetch failed for %s: %s", deck_url, error)
        return DeckEvidence(
            url=deck_url,
            accessible=False,
            deck_type=deck_type,
            content_extracted=False,
            summary="Error analyzing pitch deck",
            error=error,
        )

    async def _analyze(self, client: httpx.AsyncClient, deck_url: str, deck_type: DeckType) -> DeckEvidence:
        if deck_type in (DeckType.GOOGLE_DOCS, DeckType.SLIDES):
            return await self._analyze_google_document(client, deck_url, deck_type)
        if deck_type == DeckType.PDF:
            return await self._analyze_pdf(client, deck_url)
        return await self._analyze_generic(client, deck_url)

    async def _analyze_google_document(
        self, client: httpx.AsyncClient, deck_url: str, deck_type: DeckType
    ) -> DeckEvidence:
        match = DOCUMENT_ID_PATTERN.search(deck_url)
        text: str | None = None
        if match:
            doc_id = match.group(1)
            templates = [DOCUMENT_EXPORT_URL, PRESENTATION_EXPORT_URL]
            if deck_type == DeckType.SLIDES:
                templates.reverse()
            for template in templates:
                text = await self._export_text(client, template.format(doc_id=doc_id))
                if text is not None:
                    break
        else:
            logger.info("Could not extract a document id from %s", deck_url)

        if text is None:
            return DeckEvidence(
                url=deck_url,
                accessible=False,
                deck_type=deck_type,
                content_extracted=False,
                summary="Document may be private or sharing settings restrict access",
                error="Could not access document",
            )

        kind = "presentation" if deck_type == DeckType.SLIDES else "document"
        return DeckEvidence(
            url=deck_url,
            accessible=True,
            deck_type=deck_type,
            content_extracted=True,
            summary=f"Successfully extracted {len(text)} characters from {kind}",
            text_content=text,
        )

    async def _export_text(self, client: httpx.AsyncClient, export_url: str) -> str | None:
        async with client.stream("GET", export_url) as response:
            if response.status_code != 200:
                return None
            content_type = response.headers.get("content-type", "")
            # private documents redirect to an HTML sign-in page
            if "text/html" in content_type:
                return None
            return await read_capped_text(response, self.max_text_bytes)

    async def _head(self, client: httpx.AsyncClient, url: str) -> httpx.Response:
        response = await client.head(url)
        if response.status_code == 405:
            async with client.stream("GET", url) as streamed:
                return streamed
        return response

    async def _analyze_pdf(self, client: httpx.AsyncClient, deck_url: str) -> DeckEvidence:
        response = await self._head(client, deck_url)
        content_type = response.headers.get("content-type", "")
        if not response.is_success or "pdf" not in content_type.lower():
            if not response.is_success:
                error = f"HTTP {response.status_code}"
            else:
                error = f"Unexpected content type: {content_type or 'unknown'}"
            return DeckEvidence(
                url=deck_url,
                accessible=False,
                deck_type=DeckType.PDF,
                content_extracted=False,
                summary="PDF not accessible or invalid URL",
                error=error,
            )

        size_bytes: int | None = None
        raw_length = response.headers.get("content-length")
        if raw_length and raw_length.isdigit():
            size_bytes = int(raw_length)
        size_label = f"{round(size_bytes / 1024)}KB" if size_bytes is not None else "unknown size"
        return DeckEvidence(
            url=deck_url,
            accessible=True,
            deck_type=DeckType.PDF,
            content_extracted=False,
            summary=f"PDF accessible ({size_label}). Note: Text extraction not available for PDFs.",
            size_bytes=size_bytes,
        )

    async def _analyze_generic(self, client: httpx.AsyncClient, deck_url: str) -> DeckEvidence:
        response = await self._head(client, deck_url)
        if response.is_success:
            return DeckEvidence(
                url=deck_url,
                accessible=True,
                deck_type=DeckType.OTHER,
                content_extracted=False,
                summary="Pitch deck URL is accessible",
            )
        return DeckEvidence(
            url=deck_url,
            accessible=False,
            deck_type=DeckType.OTHER,
            content_extracted=False,
            summary="Could not access pitch deck",
            error=f"HTTP {response.status_code}",
        )
