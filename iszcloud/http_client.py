"""
http_client.py - HTTP Client for the ISZCloud API
=================================================
A thin wrapper over a requests Session. It issues one GET per call and hands
back the raw body; deciding what the body means is the caller's job.

There is no retry here: a failed request raises NetworkError once and the
aggregator decides whether to carry on with the next user.
"""

import logging

import requests

from .config import Settings
from .errors import NetworkError


logger = logging.getLogger(__name__)


class HttpClient:
    """
    HTTP client for the ISZCloud status endpoint.

    Usage:
        with HttpClient(settings) as client:
            body = client.get("https://isz.example.com/service/...")
    """

    def __init__(self, settings: Settings):
        self.settings = settings

        # One session per run; requests pools connections on it
        self.s = requests.Session()

        # None means no deadline
        self.timeout = settings.timeout_sec

    def get(self, url: str) -> bytes:
        """
        Make a GET request and return the full response body.

        The status code is not interpreted: ISZCloud reports failures inside
        its JSON body, so the body is returned whatever the status.

        Args:
            url: Fully-formed URL including the query string

        Returns:
            The response body as bytes

        Raises:
            NetworkError: If the request can't be built, the connection fails
                          or the body can't be read
        """
        try:
            r = self.s.get(url, timeout=self.timeout)
            body = r.content
        except requests.RequestException as e:
            raise NetworkError(f"GET {url} failed: {type(e).__name__}: {e}") from e

        logger.debug(f"[{r.status_code}] GET {url} ({len(body)} bytes)")
        return body

    def close(self):
        """Close the HTTP session and release resources."""
        self.s.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
