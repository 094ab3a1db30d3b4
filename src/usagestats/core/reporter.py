# -----------------------------------------------------------------------------
# Best-effort uploader for usage snapshots.
#
# One call to `Reporter.report()` performs at most one HTTP roundtrip:
#   - serialize the snapshot to JSON (snake_case keys, ISO-8601 timestamp)
#   - POST it to the collector with `Content-Type: application/json`
#   - drain the response body; its content is never interpreted
#
# Every failure (serialization, connection, timeout, non-2xx status, body read)
# is logged and swallowed. There is no retry, backoff or queue: the next upload
# tick simply tries again with a newer snapshot.
#
# The transport uses only the standard library (`urllib.request`). Unit tests
# are expected to *mock* the internal `_post()` method so that no real HTTP
# calls are made during CI.
# -----------------------------------------------------------------------------
from __future__ import annotations

import http.client
import urllib.error
import urllib.request
from collections.abc import Mapping
from dataclasses import dataclass, field

from usagestats import __version__

from .contracts.snapshot import Snapshot
from .settings import get_logger, load_settings

logger = get_logger(__name__)


@dataclass(slots=True)
class Reporter:
    """Send snapshots to the analytics collector.

    Parameters
    ----------
    url:
        Collector endpoint. Defaults to the ``USAGESTATS_ANALYTICS_URL`` setting.
    timeout_seconds:
        Network timeout of the roundtrip. Defaults to the
        ``USAGESTATS_UPLOAD_TIMEOUT`` setting (60 seconds).
    """

    url: str = field(default_factory=lambda: load_settings().analytics_url)
    timeout_seconds: float = field(default_factory=lambda: load_settings().upload_timeout)

    def report(self, snapshot: Snapshot) -> bool:
        """Upload `snapshot` once; return True if the collector answered 2xx.

        Never raises. The return value is informational; callers must not
        retry on False.
        """
        logger.debug("sending analytics report")

        try:
            body = snapshot.model_dump_json().encode("utf-8")
        except (ValueError, TypeError) as exc:
            logger.error("Error happened when preparing JSON: %s", exc)
            return False

        headers = {
            "Content-Type": "application/json",
            "User-Agent": f"usagestats/{__version__}",
        }

        try:
            status = self._post(url=self.url, headers=headers, body=body)
        except urllib.error.HTTPError as exc:
            logger.error("Analytics collector rejected upload: HTTP %d %s", exc.code, exc.reason)
            return False
        except (urllib.error.URLError, http.client.HTTPException, OSError, ValueError) as exc:
            logger.error("Error happened when uploading anonymized usage data: %s", exc)
            return False

        if not 200 <= status < 300:
            logger.error("Analytics collector answered HTTP %d", status)
            return False

        logger.debug("Analytics report delivered: HTTP %d", status)
        return True

    # --------------------------------------------------------------------- #
    # Internal helpers (test seams)
    # --------------------------------------------------------------------- #
    def _post(self, *, url: str, headers: Mapping[str, str], body: bytes) -> int:
        """Perform the HTTP POST, drain the response and return its status.

        Raises
        ------
        urllib.error.HTTPError
            For 4xx/5xx responses.
        urllib.error.URLError, OSError
            For connection failures, timeouts and body read failures.
        http.client.HTTPException
            For malformed status lines or a body cut short by the peer.
        """
        request = urllib.request.Request(
            url=url,
            data=body,
            headers=dict(headers),
            method="POST",
        )
        with urllib.request.urlopen(request, timeout=self.timeout_seconds) as resp:
            resp.read()
            return int(resp.status)


__all__ = ["Reporter"]
