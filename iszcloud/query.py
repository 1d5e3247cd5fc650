"""
query.py - Status Query Aggregator
==================================
Queries ISZCloud once per configured user and collects the answers.

A user whose request or response fails is logged and skipped; the run carries
on with the next user. The returned list therefore holds at most one record
per user, in config order, and may be empty.
"""

import logging
from typing import Iterable, List
from urllib.parse import quote

from .config import Settings
from .errors import NetworkError, ParseError
from .http_client import HttpClient
from .models import StatusRecord, User


logger = logging.getLogger(__name__)

QUERY_PATH = "/service/apply-win-query/{mobile}/{code}?cityNo=sz"


def build_query_url(server: str, user: User) -> str:
    """
    Build the status URL for one user.

    Example:
        build_query_url("https://isz.example.com", User("138", "42"))
        -> "https://isz.example.com/service/apply-win-query/138/42?cityNo=sz"
    """
    return server + QUERY_PATH.format(
        mobile=quote(user.mobile, safe=""),
        code=quote(user.code, safe=""),
    )


def query_statuses(client: HttpClient, settings: Settings) -> List[StatusRecord]:
    """
    Query the status of every user in settings, one request at a time.

    Args:
        client: HTTP client used for the GET requests
        settings: Loaded configuration (server URL + users)

    Returns:
        The records that were fetched and parsed successfully, in user order
    """
    result = []

    for user in settings.users:
        url = build_query_url(settings.server, user)

        try:
            body = client.get(url)
        except NetworkError as e:
            logger.error(f"http get error: {e}")
            continue

        try:
            record = StatusRecord.from_json(body)
        except ParseError as e:
            logger.error(f"json unmarshal error for {user.mobile}: {e}")
            continue

        logger.info(f"ISZCloud :{record}")
        result.append(record)

    logger.info(f"Queried {len(settings.users)} users, {len(result)} answered")
    return result


def render_results(records: Iterable[StatusRecord]) -> str:
    """
    Render records as the email body: "[<rec1> <rec2> ...]".

    An empty list renders as "[]".
    """
    return "[" + " ".join(str(r) for r in records) + "]"
