"""Fetch a published Google Sheet as CSV text.

Each sheet id maps to two candidate URLs, tried in order:

1. the "publish to web" endpoint
   (``/pub?gid=<gid>&single=true&output=csv``);
2. the generic export endpoint (``/export?gid=<gid>&format=csv``).

The first 2xx response wins. A transport error or non-2xx status on a
candidate is recorded as a :class:`~profinance.errors.TransportError` and the
next candidate is tried. When every candidate fails a
:class:`~profinance.errors.SourceUnavailable` is raised carrying all recorded
errors. There are no retries beyond the candidate list and no backoff.

The HTTP call uses :mod:`urllib.request` without authentication; tests inject
an ``opener`` instead of touching the network.
"""

from __future__ import annotations

import urllib.error
import urllib.request
from collections.abc import Callable
from dataclasses import dataclass

from .errors import SourceUnavailable, TransportError
from .logging_setup import get_logger

SHEETS_BASE_URL = "https://docs.google.com/spreadsheets/d"

_logger = get_logger("profinance.fetcher")


@dataclass(frozen=True, slots=True)
class HttpResponse:
    status: int
    reason: str
    body: str


type Opener = Callable[[str, float], HttpResponse]
"""Callable performing one GET: ``(url, timeout) -> HttpResponse``.

Raises ``OSError`` (``urllib.error.URLError`` included) on transport failure.
"""


def candidate_urls(sheet_id: str, *, gid: str = "0") -> list[str]:
    """Return the ordered CSV endpoints for ``sheet_id``."""

    sid = sheet_id.strip()
    if not sid:
        raise ValueError("sheet_id must be non-empty")
    return [
        f"{SHEETS_BASE_URL}/{sid}/pub?gid={gid}&single=true&output=csv",
        f"{SHEETS_BASE_URL}/{sid}/export?gid={gid}&format=csv",
    ]


def urllib_opener(url: str, timeout: float) -> HttpResponse:
    """Default :data:`Opener` backed by :func:`urllib.request.urlopen`.

    Non-2xx statuses are returned (not raised) so the fetcher can record them
    uniformly.
    """

    req = urllib.request.Request(url, method="GET")
    req.add_header("Accept", "text/csv")
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            body = resp.read()
            charset = resp.headers.get_content_charset() or "utf-8"
            return HttpResponse(
                status=resp.status,
                reason=resp.reason or "",
                body=body.decode(charset, errors="replace"),
            )
    except urllib.error.HTTPError as e:
        try:
            err_body = e.read().decode("utf-8", errors="replace")
        except OSError:
            err_body = ""
        return HttpResponse(status=e.code, reason=str(e.reason), body=err_body)


class SourceFetcher:
    """Try each candidate URL of a sheet until one answers with 2xx.

    Parameters
    ----------
    opener:
        The HTTP GET callable. Defaults to :func:`urllib_opener`.
    timeout:
        Per-request timeout in seconds.
    gid:
        Worksheet id inside the spreadsheet (``"0"`` is the first tab).
    """

    def __init__(
        self,
        opener: Opener | None = None,
        *,
        timeout: float = 15.0,
        gid: str = "0",
    ) -> None:
        self._opener: Opener = opener or urllib_opener
        self._timeout = timeout
        self._gid = gid

    def fetch(self, dataset_id: str) -> str:
        """Return the CSV body of the first successful candidate.

        Raises
        ------
        SourceUnavailable
            When every candidate failed; ``errors`` holds one
            :class:`TransportError` per attempt, in order.
        """

        errors: list[TransportError] = []
        for url in candidate_urls(dataset_id, gid=self._gid):
            _logger.debug("fetch:attempt url=%s", url)
            try:
                resp = self._opener(url, self._timeout)
            except (OSError, ValueError) as e:
                # URLError, timeouts and connection resets are all OSError.
                err = TransportError(url, str(getattr(e, "reason", e)) or type(e).__name__)
                err.__cause__ = e
                errors.append(err)
                _logger.warning("fetch:failed url=%s error=%s", url, err)
                continue

            if 200 <= resp.status < 300:
                _logger.info(
                    "fetch:ok dataset_id=%s url=%s bytes=%d", dataset_id, url, len(resp.body)
                )
                return resp.body

            err = TransportError(url, resp.reason or "unexpected status", status=resp.status)
            errors.append(err)
            _logger.warning("fetch:failed url=%s error=%s", url, err)

        raise SourceUnavailable(dataset_id, errors) from errors[-1]


__all__ = [
    "SHEETS_BASE_URL",
    "HttpResponse",
    "Opener",
    "SourceFetcher",
    "candidate_urls",
    "urllib_opener",
]
