"""
config.py - Configuration Management
=====================================
This module loads and validates the poller configuration from a JSON file.
The result is an immutable Settings object that is built once at startup and
handed to the components that need it.

Config File Format:
-------------------
    {
      "server": "https://isz.example.com",
      "user_info": [{"mobile": "13800000000", "code": "123456"}],
      "user_file": "users.csv",              (optional, see loader.py)
      "timeout_sec": null,                   (optional, default: no deadline)
      "mail": {
        "smtp_smarthost": "smtp.example.com:25",
        "smtp_from": "poller@example.com",
        "smtp_auth_username": "poller@example.com",
        "smtp_auth_identity": "",
        "smtp_auth_password": "secret",
        "smtp_require_tls": false,
        "smtp_skip_tls_verify": false,       (optional, UNSAFE when true)
        "smtp_to": ["me@example.com"]
      }
    }

Environment Overrides:
----------------------
Secrets don't have to live in the JSON file. A .env file in the working
directory (or real environment variables) can override:

- ISZCLOUD_SERVER        : replaces "server"
- ISZCLOUD_SMTP_PASSWORD : replaces "mail.smtp_auth_password"
"""

from dataclasses import dataclass
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List

from dotenv import load_dotenv

from .errors import ConfigError
from .loader import load_users
from .models import User


logger = logging.getLogger(__name__)


# =============================================================================
# SETTINGS DATACLASSES
# =============================================================================

@dataclass(frozen=True)
class MailSettings:
    """SMTP settings used by the notifier."""

    # Smarthost in "host:port" form
    smtp_host: str
    smtp_from: str
    smtp_username: str = ""
    smtp_identity: str = ""
    smtp_password: str = ""

    # Refuse to send unless the server upgrades the session with STARTTLS
    smtp_require_tls: bool = False

    # UNSAFE: skip certificate checks and allow AUTH over plaintext.
    # Only meant for relays on a trusted network.
    smtp_skip_tls_verify: bool = False

    smtp_recipients: tuple = ()


@dataclass(frozen=True)
class Settings:
    """Container for all application configuration values."""

    # Base URL of the ISZCloud API, without a trailing slash
    server: str

    users: tuple

    mail: MailSettings

    # None means the HTTP client waits as long as the transport does
    timeout_sec: float | None = None


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def _clean(v: str | None) -> str | None:
    """
    Clean and normalize an environment variable value.

    Examples:
        _clean('  hello  ')     -> 'hello'
        _clean('"quoted"')      -> 'quoted'
        _clean('')              -> None
        _clean(None)            -> None
    """
    if v is None:
        return None

    v = v.strip()

    if (v.startswith('"') and v.endswith('"')) or (v.startswith("'") and v.endswith("'")):
        v = v[1:-1]

    return v if v else None


def _require_str(section: Dict[str, Any], key: str, where: str, default: str | None = None) -> str:
    value = section.get(key, default)
    if value is None:
        raise ConfigError(f"{where}.{key} is required")
    if not isinstance(value, str):
        raise ConfigError(f"{where}.{key} must be a string, got {type(value).__name__}")
    return value


def _require_bool(section: Dict[str, Any], key: str, where: str) -> bool:
    value = section.get(key, False)
    if not isinstance(value, bool):
        raise ConfigError(f"{where}.{key} must be true or false, got {value!r}")
    return value


def _parse_users(raw: Any) -> List[User]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConfigError("user_info must be a list of {\"mobile\", \"code\"} objects")

    users = []
    for idx, entry in enumerate(raw):
        where = f"user_info[{idx}]"
        if not isinstance(entry, dict):
            raise ConfigError(f"{where} must be an object")
        users.append(User(
            mobile=_require_str(entry, "mobile", where),
            code=_require_str(entry, "code", where),
        ))
    return users


def _parse_mail(raw: Any, password_override: str | None) -> MailSettings:
    # No "mail" section: users are still queried and logged, nothing is sent
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError("mail must be an object")

    recipients = raw.get("smtp_to", [])
    if not isinstance(recipients, list):
        raise ConfigError("mail.smtp_to must be a list of addresses")
    for addr in recipients:
        if not isinstance(addr, str):
            raise ConfigError(f"mail.smtp_to entries must be strings, got {addr!r}")

    password = _require_str(raw, "smtp_auth_password", "mail", default="")
    if password_override:
        password = password_override

    return MailSettings(
        smtp_host=_require_str(raw, "smtp_smarthost", "mail", default=""),
        smtp_from=_require_str(raw, "smtp_from", "mail", default=""),
        smtp_username=_require_str(raw, "smtp_auth_username", "mail", default=""),
        smtp_identity=_require_str(raw, "smtp_auth_identity", "mail", default=""),
        smtp_password=password,
        smtp_require_tls=_require_bool(raw, "smtp_require_tls", "mail"),
        smtp_skip_tls_verify=_require_bool(raw, "smtp_skip_tls_verify", "mail"),
        smtp_recipients=tuple(recipients),
    )


def _parse_timeout(raw: Any) -> float | None:
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, (int, float)) or raw <= 0:
        raise ConfigError(f"timeout_sec must be a positive number or null, got {raw!r}")
    return float(raw)


# =============================================================================
# MAIN CONFIGURATION LOADER
# =============================================================================

def load_settings(path: str, env_file: str | Path | None = None) -> Settings:
    """
    Load the poller configuration from a JSON file.

    This function:
    1. Checks the file exists and reads it
    2. Parses it as JSON and validates the expected shape
    3. Applies ISZCLOUD_* overrides from the environment / .env file
    4. Appends users from the optional roster file
    5. Returns a frozen Settings object

    Args:
        path: Path to the JSON config file (the -c flag)
        env_file: .env file to read overrides from (default: ./.env)

    Returns:
        Settings: the validated configuration

    Raises:
        ConfigError: If the path is empty, the file is missing or unreadable,
                     or the content is not a valid config
    """
    # ---------------------------------------------------------------------
    # STEP 1: Read the file
    # ---------------------------------------------------------------------
    # An empty -c value is a usage error, not a missing file
    if not path:
        raise ConfigError("config path is empty, use -c to specify configuration file")

    cfg_path = Path(path)
    if not cfg_path.is_file():
        raise ConfigError(f"config file: {path} is not existent")

    # Surrounding whitespace and blank lines are ignored
    try:
        content = cfg_path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"read config file: {path} fail: {e}") from e

    # ---------------------------------------------------------------------
    # STEP 2: Parse and validate
    # ---------------------------------------------------------------------
    try:
        raw = json.loads(content)
    except json.JSONDecodeError as e:
        raise ConfigError(f"parse config file: {path} fail: {e}") from e

    # Every lookup below assumes a JSON object at the top level
    if not isinstance(raw, dict):
        raise ConfigError(f"config file: {path} must contain a JSON object")

    # ---------------------------------------------------------------------
    # STEP 3: Environment overrides
    # ---------------------------------------------------------------------
    # load_dotenv reads the .env file into os.environ.
    # It never overrides variables that are already set, so the real
    # environment wins over .env, and .env wins over the JSON file.
    load_dotenv(dotenv_path=env_file if env_file is not None else Path.cwd() / ".env")

    server = _clean(os.getenv("ISZCLOUD_SERVER")) or raw.get("server")
    if not isinstance(server, str) or not server.strip():
        raise ConfigError("server is required and must be a non-empty string")

    # Remove trailing slash so the query path can be appended directly
    server = server.strip().rstrip("/")

    users = _parse_users(raw.get("user_info"))

    # ---------------------------------------------------------------------
    # STEP 4: Optional roster file, resolved relative to the config file
    # ---------------------------------------------------------------------
    user_file = raw.get("user_file")
    if user_file:
        if not isinstance(user_file, str):
            raise ConfigError("user_file must be a path string")
        roster = Path(user_file)
        if not roster.is_absolute():
            roster = cfg_path.parent / roster

        # Roster users come after the inline user_info entries
        extra = load_users(roster)
        logger.info(f"Loaded {len(extra)} users from {roster}")
        users.extend(extra)

    # ---------------------------------------------------------------------
    # STEP 5: Build and return the Settings object
    # ---------------------------------------------------------------------
    settings = Settings(
        server=server,
        users=tuple(users),

        # A missing "mail" section gives empty settings (no recipients)
        mail=_parse_mail(raw.get("mail"), _clean(os.getenv("ISZCLOUD_SMTP_PASSWORD"))),

        # null / missing means no request deadline
        timeout_sec=_parse_timeout(raw.get("timeout_sec")),
    )

    logger.info(f"read config file :{path} successfully")
    return settings
