import json
import os

import pytest
import requests

from iszcloud import notifier
from iszcloud.config import MailSettings, Settings
from iszcloud.models import User


ENV_KEYS = ("ISZCLOUD_SERVER", "ISZCLOUD_SMTP_PASSWORD")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    # load_dotenv writes straight into os.environ, so undo that by hand too
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    yield
    for key in ENV_KEYS:
        os.environ.pop(key, None)


# -----------------------------------------------------------------------------
# HTTP
# -----------------------------------------------------------------------------

class FakeResponse:
    def __init__(self, content, status_code=200):
        self.content = content
        self.status_code = status_code


class FakeSession:
    """Stands in for requests.Session. Values are bytes or an exception."""

    def __init__(self, answers=None):
        self.answers = answers or {}
        self.requested = []
        self.closed = False

    def get(self, url, timeout=None):
        self.requested.append((url, timeout))
        answer = self.answers.get(url, requests.ConnectionError(f"no route to {url}"))
        if isinstance(answer, Exception):
            raise answer
        return FakeResponse(answer)

    def close(self):
        self.closed = True


def status_body(status="PAYED", success=True, **data):
    return json.dumps({
        "code": "0",
        "message": "ok",
        "success": success,
        "data": {"status": status, **data},
    }, ensure_ascii=False).encode("utf-8")


# -----------------------------------------------------------------------------
# SMTP
# -----------------------------------------------------------------------------

class FakeSMTP:
    extensions = {"starttls", "auth"}
    instances = []

    # {address: (code, reply)} handed back by sendmail
    refused = {}

    def __init__(self, host, port):
        self.host = host
        self.port = port
        self.calls = []
        self.sent = []
        self.tls_context = None
        type(self).instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.calls.append("quit")
        return False

    def ehlo(self):
        self.calls.append("ehlo")

    def has_extn(self, name):
        return name.lower() in self.extensions

    def starttls(self, context=None):
        self.calls.append("starttls")
        self.tls_context = context

    def login(self, user, password):
        self.calls.append(("login", user, password))

    def auth(self, mechanism, authobject, initial_response_ok=True):
        self.calls.append(("auth", mechanism, authobject()))

    def sendmail(self, from_addr, to_addrs, msg):
        self.sent.append((from_addr, list(to_addrs), msg))
        return dict(self.refused)


@pytest.fixture
def fake_smtp(monkeypatch):
    class Recorder(FakeSMTP):
        extensions = {"starttls", "auth"}
        instances = []

    monkeypatch.setattr(notifier.smtplib, "SMTP", Recorder)
    return Recorder


# -----------------------------------------------------------------------------
# SETTINGS
# -----------------------------------------------------------------------------

@pytest.fixture
def mail_settings():
    return MailSettings(
        smtp_host="smtp.example.com:25",
        smtp_from="poller@example.com",
        smtp_username="poller@example.com",
        smtp_password="secret",
        smtp_recipients=("me@example.com",),
    )


@pytest.fixture
def settings(mail_settings):
    return Settings(
        server="https://isz.example.com",
        users=(User("111", "c1"), User("222", "c2")),
        mail=mail_settings,
    )


@pytest.fixture
def write_config(tmp_path):
    def write(data, name="cfg.json"):
        path = tmp_path / name
        if isinstance(data, str):
            path.write_text(data, encoding="utf-8")
        else:
            path.write_text(json.dumps(data), encoding="utf-8")
        return path
    return write


@pytest.fixture
def raw_config():
    return {
        "server": "https://isz.example.com/",
        "user_info": [
            {"mobile": "111", "code": "c1"},
            {"mobile": "222", "code": "c2"},
        ],
        "mail": {
            "smtp_smarthost": "smtp.example.com:25",
            "smtp_from": "poller@example.com",
            "smtp_auth_username": "poller@example.com",
            "smtp_auth_identity": "",
            "smtp_auth_password": "secret",
            "smtp_require_tls": False,
            "smtp_to": ["me@example.com", "you@example.com"],
        },
    }
