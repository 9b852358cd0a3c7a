"""
Failure classification for liveness probes.

Maps the outcome of one network attempt, either an HTTP status code or the
exception raised while trying to get one, onto the ok / dead / error
taxonomy together with the status code reported to the caller.

``dead`` means permanently unreachable and is not worth retrying;
``error`` is transient or ambiguous and is a retry candidate.
"""

import asyncio
import errno
import socket
from typing import Tuple

import aiohttp

from .data_models import LinkStatus

# Treated as permanently unreachable/forbidden
DEAD_STATUS_CODES = frozenset({403, 404, 410})

# Status codes reported when no response was received
TIMEOUT_STATUS_CODE = 408
NO_RESPONSE_STATUS_CODE = 0
UNKNOWN_FAILURE_STATUS_CODE = 500

DNS_ERROR_MARKERS = (
    "name resolution",
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "no address associated",
)


def classify_status_code(status_code: int) -> LinkStatus:
    """
    Classify a received HTTP response by status code.

    Args:
        status_code: HTTP status code of the final response

    Returns:
        OK for 2xx, DEAD for 403/404/410, ERROR for anything else
    """
    if 200 <= status_code < 300:
        return LinkStatus.OK
    if status_code in DEAD_STATUS_CODES:
        return LinkStatus.DEAD
    return LinkStatus.ERROR


def is_timeout(exc: BaseException) -> bool:
    # aiohttp.ServerTimeoutError is also an asyncio.TimeoutError
    return isinstance(exc, asyncio.TimeoutError)


def is_dns_failure(exc: BaseException) -> bool:
    """Check whether an exception means the host name does not resolve."""
    dns_error_class = getattr(aiohttp, "ClientConnectorDNSError", None)
    if dns_error_class is not None and isinstance(exc, dns_error_class):
        return True

    if isinstance(exc, socket.gaierror):
        return True

    if isinstance(exc, aiohttp.ClientConnectorError) and isinstance(
        exc.os_error, socket.gaierror
    ):
        return True

    message = str(exc).lower()
    return any(marker in message for marker in DNS_ERROR_MARKERS)


def is_connection_refused(exc: BaseException) -> bool:
    """Check whether an exception means the host actively refused the connection."""
    if isinstance(exc, ConnectionRefusedError):
        return True

    if isinstance(exc, aiohttp.ClientConnectorError):
        os_error = exc.os_error
        if isinstance(os_error, ConnectionRefusedError):
            return True
        if getattr(os_error, "errno", None) == errno.ECONNREFUSED:
            return True

    return "connection refused" in str(exc).lower()


def classify_exception(exc: BaseException) -> Tuple[LinkStatus, int]:
    """
    Classify a failed network attempt.

    Args:
        exc: Exception raised while requesting the URL

    Returns:
        Tuple of (status, status_code), in priority order:
        timeout -> (ERROR, 408), DNS failure -> (DEAD, 0),
        connection refused -> (DEAD, 0), anything else -> (ERROR, 500)
    """
    if is_timeout(exc):
        return LinkStatus.ERROR, TIMEOUT_STATUS_CODE
    if is_dns_failure(exc):
        return LinkStatus.DEAD, NO_RESPONSE_STATUS_CODE
    if is_connection_refused(exc):
        return LinkStatus.DEAD, NO_RESPONSE_STATUS_CODE
    return LinkStatus.ERROR, UNKNOWN_FAILURE_STATUS_CODE


__all__ = [
    "DEAD_STATUS_CODES",
    "TIMEOUT_STATUS_CODE",
    "NO_RESPONSE_STATUS_CODE",
    "UNKNOWN_FAILURE_STATUS_CODE",
    "classify_status_code",
    "classify_exception",
    "is_timeout",
    "is_dns_failure",
    "is_connection_refused",
]
