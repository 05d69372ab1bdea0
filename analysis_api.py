"""
Client for the remote analysis service and the public IP lookup
"""

import json
import logging
from typing import Any, Optional

import requests

from app_config import get_analysis_api_url, get_analysis_timeout, get_ip_lookup_url
from errors import TransportError
from models import AnalysisResult

logger = logging.getLogger(__name__)

NETWORK_FAILURE_MESSAGE = "Network request failed. Please check your connection and try again."

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}


# ---------------------------
# Error formatting
# ---------------------------

def _is_validation_list(value: Any) -> bool:
    return (
        isinstance(value, list)
        and len(value) > 0
        and isinstance(value[0], dict)
        and "loc" in value[0]
        and "msg" in value[0]
    )


def _format_validation(status_code: int, errors: list) -> str:
    first = errors[0]
    loc = first.get("loc") or []
    if isinstance(loc, (list, tuple)):
        loc = ".".join(str(part) for part in loc)
    return f"Validation Error ({status_code}): {first['msg']} at {loc}"


def format_error_message(status_code: int, body: Any) -> str:
    """
    Turn an error response body into a single human-readable message.

    Handles {"detail": "..."}, FastAPI's {"detail": [{"loc", "msg"}]},
    a bare list of {"loc", "msg"} objects, and anything else as JSON.
    """
    if isinstance(body, dict) and body.get("detail"):
        detail = body["detail"]
        if _is_validation_list(detail):
            return _format_validation(status_code, detail)
        return f"API Error ({status_code}): {detail}"

    if _is_validation_list(body):
        return _format_validation(status_code, body)

    return f"API Error ({status_code}): {json.dumps(body)}"


# ---------------------------
# Analysis client
# ---------------------------

class AnalysisClient:
    """POSTs post URLs to /find-articles and parses matched articles."""

    def __init__(
        self,
        endpoint: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
    ):
        self.endpoint = endpoint or get_analysis_api_url()
        self.session = session or requests.Session()
        # None leaves the timeout to the transport
        self.timeout = timeout if timeout is not None else get_analysis_timeout()

    def analyze(self, url: str) -> AnalysisResult:
        """
        Request matched articles for a post URL.

        Args:
            url: Social-media post URL

        Returns:
            AnalysisResult (possibly with no matched articles)

        Raises:
            TransportError: On network failure, non-2xx status, or malformed body
        """
        try:
            resp = self.session.post(
                self.endpoint,
                headers=DEFAULT_HEADERS,
                json={"url": url},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error("Analysis request failed: %s", e)
            raise TransportError(NETWORK_FAILURE_MESSAGE)

        if not resp.ok:
            try:
                body = resp.json()
            except ValueError:
                raise TransportError(
                    f"Network response error: {resp.status_code} - No parsable error message from server.",
                    status_code=resp.status_code,
                )
            message = format_error_message(resp.status_code, body)
            logger.warning("Analysis service rejected %s: %s", url, message)
            raise TransportError(message, status_code=resp.status_code)

        try:
            payload = resp.json()
        except ValueError:
            raise TransportError("Malformed response from the analysis service.", status_code=resp.status_code)

        result = AnalysisResult.from_payload(payload)
        logger.info("Analysis of %s matched %d articles", url, len(result.matched_articles))
        return result

    __call__ = analyze


def get_client_ip(session: Optional[requests.Session] = None, timeout: int = 10) -> str:
    """
    Resolve the caller's public IP address.

    Raises:
        requests.exceptions.RequestException: On network failure
        ValueError: If the response carries no IP
    """
    http = session or requests
    resp = http.get(get_ip_lookup_url(), timeout=timeout)
    resp.raise_for_status()
    ip = resp.json().get("ip")
    if not ip:
        raise ValueError("IP lookup returned no address")
    return ip
