"""
iszcloud - ISZCloud Mask-Lottery Poller
=======================================

Checks the mask-lottery application status of a list of users on ISZCloud
and emails a summary of the results.

Modules:
--------
- errors.py      : Error types
- config.py      : Configuration management (JSON file + .env overrides)
- loader.py      : Optional user roster loading (Excel/CSV)
- models.py      : User and status record dataclasses
- http_client.py : HTTP client for the ISZCloud API
- query.py       : Per-user status queries and result rendering
- notifier.py    : Email delivery over SMTP
- run_poller.py  : Main entry point and orchestration

Usage:
------
    python -m iszcloud.run_poller -c cfg.json
    iszcloud-poller -c cfg.json --debug

Workflow:
---------
1. Load configuration from the JSON file
2. For each user, GET /service/apply-win-query/{mobile}/{code}?cityNo=sz
3. Skip users whose request or response fails
4. Email "[ISZCloud][<date>]口罩预约结果" with one line block per user
"""
