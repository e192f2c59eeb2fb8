"""Best-effort HTTP probes against the deployed lab services."""

from __future__ import annotations

import logging
import socket
from http.client import HTTPException
import ssl
from typing import Iterable, List
from urllib import error, request

from lab_common.api import ProbeFailure

from lab_provisioner.models.settings import ProbeConfig
from lab_provisioner.models.types import ProbeResult

logger = logging.getLogger(__name__)

_MAX_BODY = 2 * 1024 * 1024
_UNAUTHORIZED = 401


def insecure_context() -> ssl.SSLContext:
    """TLS context for lab endpoints, which use self-signed certificates."""
    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


class Verifier:
    """Run every probe and record whether its service answered."""

    def __init__(self, timeout_seconds: float = 10.0) -> None:
        self.timeout_seconds = timeout_seconds
        self._context = insecure_context()

    def verify(self, probes: Iterable[ProbeConfig]) -> List[ProbeResult]:
        results = []
        for probe in probes:
            result = self.check(probe)
            if not result.reachable:
                failure = ProbeFailure(
                    f"{probe.name} not reachable at {probe.url}",
                    context={"detail": result.detail},
                )
                logger.warning("%s (%s)", failure, result.detail)
            else:
                logger.info("%s reachable at %s", probe.name, probe.url)
            results.append(result)
        return results

    def check(self, probe: ProbeConfig) -> ProbeResult:
        marker = probe.marker if probe.marker else "HTTP 401"
        try:
            with request.urlopen(  # nosec B310
                probe.url, timeout=self.timeout_seconds, context=self._context
            ) as response:
                body = response.read(_MAX_BODY).decode("utf-8", errors="replace")
                status = getattr(response, "status", 200)
        except error.HTTPError as exc:
            if probe.success_on_401 and exc.code == _UNAUTHORIZED:
                return self._result(probe, marker, True, "HTTP 401 (listening)")
            return self._result(probe, marker, False, f"HTTP {exc.code}")
        except (error.URLError, HTTPException, socket.timeout, OSError, ValueError) as exc:
            reason = getattr(exc, "reason", exc)
            return self._result(probe, marker, False, str(reason))

        if probe.marker and probe.marker in body:
            return self._result(probe, marker, True, f"HTTP {status}")
        if probe.marker:
            return self._result(probe, marker, False, f"HTTP {status}, marker not found")
        # success_on_401 probes that answer without a challenge are still listening
        return self._result(probe, marker, True, f"HTTP {status}")

    @staticmethod
    def _result(probe: ProbeConfig, marker: str, reachable: bool, detail: str) -> ProbeResult:
        return ProbeResult(
            endpoint=probe.url,
            expected_marker=marker,
            reachable=reachable,
            name=probe.name,
            detail=detail,
        )
