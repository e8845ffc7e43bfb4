# src/autojob/http/client.py

"""Outbound HTTP capability (httpx) and the cookie-backed credential store."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from dataclasses import dataclass
from http.cookiejar import LoadError, MozillaCookieJar
from pathlib import Path
from typing import Any

import httpx

from ..core.errors import CredentialFileError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; autojob/0.1)"

# Tasks set "X-Override-Referer: ..." to send a header the client would otherwise manage itself.
OVERRIDE_HEADER_PREFIX = "x-override-"


async def apply_header_overrides(request: httpx.Request) -> None:
    """httpx request hook: rename every X-Override-<Name> header to <Name>, replacing it."""
    prefix = OVERRIDE_HEADER_PREFIX
    names = [n for n in request.headers.keys() if n.lower().startswith(prefix) and len(n) > len(prefix)]
    for name in names:
        values = request.headers.get_list(name)
        del request.headers[name]
        request.headers[name[len(prefix):]] = ", ".join(values)


@dataclass(slots=True)
class HttpResponse:
    url: str
    redirected: bool
    status: int
    body: str

    async def text(self) -> str:
        return self.body


class HttpDispatch:
    """
    Raw dispatch capability over a shared httpx.AsyncClient.

    Redirects are followed; `redirected` reports whether any hop happened,
    which is how signin detects a bounce to the login page.
    Transport errors propagate as httpx exceptions.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        user_agent: str = DEFAULT_USER_AGENT,
        headers: dict[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        base_headers = {"User-Agent": user_agent}
        if headers:
            base_headers.update(headers)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds, connect=10.0),
            headers=base_headers,
            follow_redirects=True,
            event_hooks={"request": [apply_header_overrides]},
            transport=transport,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    async def __call__(self, resource: str, **options: Any) -> HttpResponse:
        method = str(options.pop("method", "GET")).upper()
        response = await self._client.request(method, str(resource), **options)
        return HttpResponse(
            url=str(response.url),
            redirected=bool(response.history),
            status=response.status_code,
            body=response.text,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def _normalize_domain(domain: str) -> str:
    d = (domain or "").strip().lower()
    for prefix in ("https://", "http://"):
        if d.startswith(prefix):
            d = d[len(prefix):]
    d = d.split("/", 1)[0]
    return d.lstrip("*").lstrip(".")


class CookieCredentialStore:
    """
    Reads cookies from the dispatch client's jar, scoped to a domain and its subdomains.

    The jar is filled from a Netscape cookies.txt exported from the browser the
    operator signed in with; reload() re-reads it after a new login.
    """

    def __init__(self, cookies: httpx.Cookies, cookies_file: str | Path | None = None) -> None:
        self._cookies = cookies
        self.cookies_file = Path(cookies_file).expanduser() if cookies_file else None

    def _iter_scoped(self, domain: str) -> Iterator[tuple[str, str]]:
        want = _normalize_domain(domain)
        for cookie in self._cookies.jar:
            have = (cookie.domain or "").lower().lstrip(".")
            if not want or have == want or have.endswith("." + want):
                yield cookie.name, cookie.value or ""

    def get_all(self, domain: str) -> list[tuple[str, str]]:
        found = list(self._iter_scoped(domain))
        logger.debug("Credential store: %d cookies for %s", len(found), domain)
        return found

    def reload(self, path: str | Path | None = None) -> int:
        """
        Load a Netscape cookie file into the jar, replacing same-named cookies.

        Remembers `path` for the next call. Returns the number of cookies loaded.
        """
        if path:
            self.cookies_file = Path(path).expanduser()
        if self.cookies_file is None:
            raise CredentialFileError("No cookie file configured (AUTOJOB_COOKIES_FILE)")

        jar = MozillaCookieJar(str(self.cookies_file))
        try:
            # Expiry is checked below: exports write 0 for session cookies.
            jar.load(ignore_discard=True, ignore_expires=True)
        except (OSError, LoadError) as e:
            raise CredentialFileError(f"Cannot load cookies from {self.cookies_file}: {e}") from e

        now = time.time()
        n = 0
        for cookie in jar:
            if cookie.expires and cookie.expires < now:
                continue
            self._cookies.jar.set_cookie(cookie)
            n += 1
        logger.info("Loaded %d cookies from %s", n, self.cookies_file)
        return n
