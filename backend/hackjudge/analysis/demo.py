import asyncio
import logging
import time

import httpx

from .evidence import DemoEvidence
from .http import ClientFactory, default_client_factory, describe_error, read_capped

logger = logging.getLogger(__name__)

HTML_SNIFF_BYTES = 2_000

# (lower-case needle, hint) pairs matched against the first bytes of the page
HTML_SIGNATURES = (
    ("next.js", "Framework: Next.js"),
    ("__next_data__", "Framework: Next.js"),
    ("/_next/", "Framework: Next.js"),
    ("__nuxt", "Framework: Nuxt"),
    ("ng-version", "Framework: Angular"),
    ("svelte", "Framework: Svelte"),
    ("gatsby", "Framework: Gatsby"),
    ("vue", "Framework: Vue.js"),
    ("react", "Library: React"),
    ("streamlit", "Framework: Streamlit"),
    ("gradio", "Framework: Gradio"),
    ("vercel", "Hosting: Vercel"),
    ("netlify", "Hosting: Netlify"),
    ("herokuapp", "Hosting: Heroku"),
)

HEADER_HINTS = (
    ("server", "Server"),
    ("x-powered-by", "Powered by"),
    ("x-framework", "Framework"),
)

HOSTING_HEADERS = (
    ("x-vercel-id", "Hosting: Vercel"),
    ("x-nf-request-id", "Hosting: Netlify"),
)


def detect_tech_hints(headers: httpx.Headers, html_prefix: str) -> list[str]:
    hints: list[str] = []
    for header, label in HEADER_HINTS:
        value = headers.get(header)
        if value:
            hints.append(f"{label}: {value}")
    for header, hint in HOSTING_HEADERS:
        if header in headers:
            hints.append(hint)

    lowered = html_prefix.lower()
    for needle, hint in HTML_SIGNATURES:
        if needle in lowered:
            hints.append(hint)
    return list(dict.fromkeys(hints))


class DemoFetcher:
    """Liveness probe for a submission's demo URL."""

    def __init__(
        self,
        *,
        timeout: float = 10.0,
        user_agent: str = "Mozilla/5.0 (compatible; HackJudge-Bot/1.0)",
        client_factory: ClientFactory | None = None,
    ) -> None:
        self.timeout = timeout
        self.client_factory = client_factory or default_client_factory(user_agent, timeout)

    async def fetch(self, demo_url: str) -> DemoEvidence:
        logger.info("Checking demo URL %s", demo_url)
        try:
            async with self.client_factory() as client:
                # wait_for bounds the whole probe; httpx timeouts are per socket operation
                return await asyncio.wait_for(self._probe(client, demo_url), self.timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning("Demo URL %s timed out", demo_url)
            return DemoEvidence(url=demo_url, is_live=False, error=f"Timeout (>{self.timeout:g}s)")
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("Demo URL %s unreachable: %s", demo_url, exc)
            return DemoEvidence(url=demo_url, is_live=False, error=describe_error(exc))

    async def _probe(self, client: httpx.AsyncClient, demo_url: str) -> DemoEvidence:
        started = time.perf_counter()
        async with client.stream("GET", demo_url) as response:
            elapsed_ms = int((time.perf_counter() - started) * 1000)
            logger.info("Demo URL %s responded %s (%sms)", demo_url, response.status_code, elapsed_ms)
            if not response.is_success:
                return DemoEvidence(
                    url=demo_url,
                    is_live=False,
                    status_code=response.status_code,
                    response_time_ms=elapsed_ms,
                    error=f"HTTP {response.status_code}",
                )

            html_prefix = ""
            try:
                raw, _ = await read_capped(response, HTML_SNIFF_BYTES)
                html_prefix = raw.decode("utf-8", errors="ignore")
            except httpx.StreamError as exc:
                logger.debug("Could not read demo body for %s: %s", demo_url, exc)

            return DemoEvidence(
                url=demo_url,
                is_live=True,
                status_code=response.status_code,
                response_time_ms=elapsed_ms,
                tech_hints=detect_tech_hints(response.headers, html_prefix),
            )
