"""
notifier.py - Email Notifier
============================
Sends the run summary as a single email through an SMTP smarthost.

Pieces:
-------
- create_email_sender : picks the sender implementation (only SMTP exists)
- SmtpSender          : skips empty sends, logs, delegates to smtp_send_mail
- smtp_send_mail      : validates address and recipients, then delivers
- build_message       : hand-built MIME message with a base64 body

TLS and Authentication:
-----------------------
If the server offers STARTTLS the session is always upgraded, with
certificate verification. With smtp_require_tls the upgrade is mandatory.
Credentials are never sent over a plaintext channel to a remote host, unless
smtp_skip_tls_verify is set. That option also turns certificate verification
off. It is UNSAFE on any network you don't fully trust; it exists for old
internal relays that advertise AUTH without usable TLS.
"""

from abc import ABC, abstractmethod
import base64
import logging
import smtplib
import ssl
from typing import Sequence

from .config import MailSettings
from .errors import InsecureAuthError, InvalidAddress, InvalidRecipients, InvalidTos, MailError


logger = logging.getLogger(__name__)

# Hosts where AUTH over plaintext never leaves the machine
LOCAL_HOSTS = ("localhost", "127.0.0.1", "::1")

CONTENT_TYPES = {
    "html": "text/html; charset=UTF-8",
}
DEFAULT_CONTENT_TYPE = "text/plain; charset=UTF-8"


# =============================================================================
# MESSAGE FORMATTING
# =============================================================================

def encode_subject(subject: str) -> str:
    """Encode a subject as an RFC 2047 "B" encoded-word."""
    return "=?UTF-8?B?%s?=" % base64.b64encode(subject.encode("utf-8")).decode("ascii")


def decode_subject(encoded: str) -> str:
    """Reverse encode_subject. Raises ValueError for anything else."""
    prefix, suffix = "=?UTF-8?B?", "?="
    if not (encoded.startswith(prefix) and encoded.endswith(suffix)):
        raise ValueError(f"not a UTF-8 B encoded-word: {encoded!r}")
    return base64.b64decode(encoded[len(prefix):-len(suffix)]).decode("utf-8")


def build_message(sender: str, tos: str, subject: str, body: str, content_type: str = "text") -> str:
    """
    Build the raw message text.

    Headers come out in a fixed order:
    From, To, Subject, MIME-Version, Content-Type, Content-Transfer-Encoding
    """
    headers = [
        ("From", sender),
        ("To", tos),
        ("Subject", encode_subject(subject)),
        ("MIME-Version", "1.0"),
        ("Content-Type", CONTENT_TYPES.get(content_type, DEFAULT_CONTENT_TYPE)),
        ("Content-Transfer-Encoding", "base64"),
    ]

    message = "".join(f"{k}: {v}\r\n" for k, v in headers)
    message += "\r\n" + base64.b64encode(body.encode("utf-8")).decode("ascii")
    return message


# =============================================================================
# SMTP DELIVERY
# =============================================================================

def _tls_context(skip_verify: bool) -> ssl.SSLContext:
    ctx = ssl.create_default_context()
    if skip_verify:
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
    return ctx


def smtp_send_mail(
    address: str,
    username: str,
    password: str,
    sender: str,
    tos: str,
    subject: str,
    body: str,
    content_type: str = "text",
    *,
    identity: str = "",
    require_tls: bool = False,
    skip_tls_verify: bool = False,
):
    """
    Deliver one message through the smarthost at address.

    Args:
        address: Smarthost as "host:port"
        username, password: AUTH credentials (no AUTH when username is empty)
        sender: Envelope and header sender
        tos: Recipients joined with ";" (empty entries are dropped)
        subject, body: Message subject and text
        content_type: "html" or anything else for plain text
        identity: Optional authorization identity for AUTH PLAIN
        require_tls: Fail unless the server supports STARTTLS
        skip_tls_verify: UNSAFE, see module docstring

    Raises:
        InvalidAddress: address is empty or not "host:port"
        InvalidRecipients: no recipient left after filtering
        InsecureAuthError: TLS required/needed for AUTH but not available
        smtplib.SMTPException, OSError: delivery failures
    """
    # ---------------------------------------------------------------------
    # STEP 1: Validate address and recipients
    # ---------------------------------------------------------------------
    if not address:
        raise InvalidAddress("address is necessary")

    # Exactly one ":" - IPv6 literals and missing ports are both rejected
    hp = address.split(":")
    if len(hp) != 2:
        raise InvalidAddress(f"address format error: {address!r}, expected host:port")

    host, port = hp
    try:
        port_num = int(port)
    except ValueError:
        raise InvalidAddress(f"address format error: port {port!r} is not a number") from None

    # Drop empty entries, e.g. from "a@x.com;;b@x.com;"
    recipients = [t for t in tos.split(";") if t]
    if not recipients:
        raise InvalidRecipients("tos invalid")

    message = build_message(sender, ";".join(recipients), subject, body, content_type)

    # ---------------------------------------------------------------------
    # STEP 2: Connect and upgrade to TLS
    # ---------------------------------------------------------------------
    # The password is never logged
    logger.debug(f"smtp send: {address} from={sender} tos={recipients}")

    # The context manager sends QUIT and closes the socket on the way out
    with smtplib.SMTP(host, port_num) as smtp:
        smtp.ehlo()

        # Upgrade whenever the server offers STARTTLS; it's only mandatory
        # with require_tls
        encrypted = False
        if smtp.has_extn("starttls"):
            smtp.starttls(context=_tls_context(skip_tls_verify))

            # Capabilities must be re-read after the upgrade
            smtp.ehlo()
            encrypted = True
        elif require_tls:
            raise InsecureAuthError(f"{host} does not support STARTTLS and smtp_require_tls is set")

        # -----------------------------------------------------------------
        # STEP 3: Authenticate
        # -----------------------------------------------------------------
        if username:
            # Plaintext AUTH only to the local machine, or with the explicit
            # UNSAFE opt-in
            if not encrypted:
                if skip_tls_verify:
                    logger.warning(f"sending SMTP credentials to {host} over an unencrypted connection")
                elif host not in LOCAL_HOSTS:
                    raise InsecureAuthError(
                        f"refusing to authenticate to {host} over an unencrypted connection "
                        "(set smtp_skip_tls_verify to override, UNSAFE)"
                    )

            # AUTH PLAIN with an authorization identity needs the raw
            # auth() call; login() picks the mechanism itself otherwise
            if identity:
                smtp.auth("PLAIN", lambda challenge=None: f"{identity}\0{username}\0{password}")
            else:
                smtp.login(username, password)

        # -----------------------------------------------------------------
        # STEP 4: Send
        # -----------------------------------------------------------------
        # sendmail raises if every recipient is refused; when only some are,
        # it returns {address: (code, reply)} for the refused ones
        refused = smtp.sendmail(sender, recipients, message.encode("utf-8"))
        for addr, (code, reply) in (refused or {}).items():
            logger.warning(f"recipient {addr} refused: {code} {reply!r}")


# =============================================================================
# SENDERS
# =============================================================================

class EmailSender(ABC):
    """Something that can deliver one email to a list of recipients."""

    @abstractmethod
    def send_email(self, recipients: Sequence[str], content: str, subject: str, content_type: str = "text"):
        ...


class SmtpSender(EmailSender):

    def __init__(self, mail: MailSettings):
        self.mail = mail

    def send_email(self, recipients: Sequence[str], content: str, subject: str, content_type: str = "text"):
        """
        Send content to recipients. Returns without sending anything when
        there are no recipients or the content is empty.
        """
        if not recipients:
            logger.debug("not specified email address!")
            return

        if not content:
            logger.debug("the content is empty!")
            return

        for addr in recipients:
            if not isinstance(addr, str):
                raise InvalidTos(f"recipient must be a string, got {addr!r}")

        tos = ";".join(recipients)
        logger.info(f"/sender/mail: contentType={content_type}, tos={tos}, subject={subject}, content={content}")

        if self.mail.smtp_skip_tls_verify:
            logger.warning("smtp_skip_tls_verify is set: TLS certificates are not checked")

        try:
            smtp_send_mail(
                self.mail.smtp_host,
                self.mail.smtp_username,
                self.mail.smtp_password,
                self.mail.smtp_from,
                tos,
                subject,
                content,
                content_type,
                identity=self.mail.smtp_identity,
                require_tls=self.mail.smtp_require_tls,
                skip_tls_verify=self.mail.smtp_skip_tls_verify,
            )
        except (MailError, smtplib.SMTPException, OSError) as e:
            logger.error(f"err={e}")
            raise


def create_email_sender(kind: str, mail: MailSettings) -> EmailSender:
    """
    Return the sender for kind. SMTP is the only implementation, so unknown
    kinds get it as well.
    """
    if kind.upper() != "SMTP":
        logger.debug(f"unknown email sender {kind!r}, using SMTP")
    return SmtpSender(mail)
