"""
errors.py - Error Types
=======================
Every failure the poller can raise on purpose derives from PollerError, so
the entry point can catch them with one except clause.

    ConfigError        : config file missing, unreadable or malformed (fatal)
    NetworkError       : one HTTP query failed (that user is skipped)
    ParseError         : the API answered with something that is not a status
    InvalidAddress     : smarthost is not "host:port"
    InvalidRecipients  : no usable recipient left after filtering
    InvalidTos         : a recipient entry is not a string
    InsecureAuthError  : refusing to send credentials over a plaintext channel
"""


class PollerError(Exception):
    """Base class for all poller errors."""


class ConfigError(PollerError):
    pass


class NetworkError(PollerError):
    pass


class ParseError(PollerError):
    pass


class MailError(PollerError):
    """Raised before or during SMTP delivery."""


class InvalidAddress(MailError):
    pass


class InvalidRecipients(MailError):
    pass


class InvalidTos(MailError):
    pass


class InsecureAuthError(MailError):
    pass
