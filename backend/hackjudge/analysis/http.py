from typing import Callable

import httpx

TRUNCATION_MARKER = "\n\n[... truncated for length]"

ClientFactory = Callable[[], httpx.AsyncClient]


def default_client_factory(user_agent: str, timeout: float) -> ClientFactory:
    def factory() -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers={"User-Agent": user_agent},
            timeout=timeout,
            follow_redirects=True,
        )

    return factory


async def read_capped(response: httpx.Response, max_bytes: int) -> tuple[bytes, bool]:
    """Read at most ``max_bytes`` of a streamed body; the rest is never downloaded."""
    chunks: list[bytes] = []
    total = 0
    async for chunk in response.aiter_bytes():
        if not chunk:
            continue
        chunks.append(chunk)
        total += len(chunk)
        if total > max_bytes:
            break
    raw = b"".join(chunks)
    return raw[:max_bytes], len(raw) > max_bytes


async def read_capped_text(response: httpx.Response, max_bytes: int) -> str:
    raw, truncated = await read_capped(response, max_bytes)
    try:
        text = raw.decode(response.encoding or "utf-8", errors="ignore")
    except LookupError:
        text = raw.decode("utf-8", errors="ignore")
    if truncated:
        text += TRUNCATION_MARKER
    return text


def describe_error(exc: BaseException) -> str:
    message = str(exc).strip()
    return message or exc.__class__.__name__
