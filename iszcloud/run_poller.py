"""
run_poller.py - Main Application Entry Point
============================================
Orchestrates one polling run.

What it does:
-------------
1. Loads configuration from the JSON config file (-c, default cfg.json)
2. Queries ISZCloud for every configured user
3. Emails the collected results to the configured recipients

Scheduling is left to cron (or whatever runs this script); one invocation
is one run.

Usage:
------
    python -m iszcloud.run_poller
    python -m iszcloud.run_poller -c /etc/iszcloud/cfg.json
    python -m iszcloud.run_poller -c cfg.json --debug

Failures are logged. The process exits normally either way.
"""

import sys
import logging
import argparse
import smtplib
from datetime import date

from .config import load_settings
from .errors import PollerError
from .http_client import HttpClient
from .notifier import create_email_sender
from .query import query_statuses, render_results


# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================

LOG_LEVEL = logging.INFO

DEFAULT_CONFIG = "cfg.json"

# Only one sender implementation exists
SENDER_KIND = "smtp"


logger = logging.getLogger(__name__)


def build_subject(today: date | None = None) -> str:
    """Subject line: [ISZCloud][YYYY-MM-DD]口罩预约结果"""
    today = today or date.today()
    return f"[ISZCloud][{today:%Y-%m-%d}]口罩预约结果"


def parse_arguments(argv=None):
    parser = argparse.ArgumentParser(
        description='Query ISZCloud mask-lottery results and email a summary',
    )

    parser.add_argument(
        '-c', '--config',
        default=DEFAULT_CONFIG,
        help=f'config data json (default: {DEFAULT_CONFIG})'
    )

    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging'
    )

    return parser, parser.parse_args(argv)


# =============================================================================
# MAIN EXECUTION FUNCTION
# =============================================================================

def main(argv=None):
    """
    Run one poll: load config, query every user, send one email.

    Never raises for expected failures; they end up in the log.
    """
    parser, args = parse_arguments(argv)

    logging.basicConfig(
        level=LOG_LEVEL,
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%H:%M:%S'
    )
    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    if not args.config:
        parser.print_usage()
        return

    # -------------------------------------------------------------------------
    # STEP 1: Load configuration
    # -------------------------------------------------------------------------
    try:
        settings = load_settings(args.config)
    except PollerError as e:
        logger.error(f"parser config error: {e}")
        return

    logger.info(f"Server: {settings.server}")
    logger.info(f"Users: {len(settings.users)}")

    # -------------------------------------------------------------------------
    # STEP 2: Query ISZCloud
    # -------------------------------------------------------------------------
    with HttpClient(settings) as client:
        result = query_statuses(client, settings)

    # -------------------------------------------------------------------------
    # STEP 3: Send the summary
    # -------------------------------------------------------------------------
    sender = create_email_sender(SENDER_KIND, settings.mail)
    try:
        sender.send_email(
            list(settings.mail.smtp_recipients),
            render_results(result),
            build_subject(),
            "text",
        )
    except (PollerError, smtplib.SMTPException, OSError) as e:
        logger.error(f"send email error: {e}")
        return

    logger.info("query iszcloud success!!!")


# =============================================================================
# SCRIPT ENTRY POINT
# =============================================================================

if __name__ == '__main__':
    if __package__ is None:
        print(
            "ERROR: This script must be run as a module.\n"
            "Usage: python -m iszcloud.run_poller -c cfg.json"
        )
        sys.exit(1)

    main()
