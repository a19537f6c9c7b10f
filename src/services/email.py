"""
Email composition utilities.

This module builds the MIME messages sent by the notifier: an HTML body
with a plain-text alternative for clients that do not render HTML.
"""

import html
import logging
import re
from email.message import EmailMessage
from email.utils import formatdate, make_msgid
from typing import Optional

logger = logging.getLogger(__name__)

_BREAK_TAGS = re.compile(r'<\s*(br|/p|/div|/tr|/h\d|hr)[^>]*>', re.IGNORECASE)
_CELL_END = re.compile(r'<\s*/td\s*>', re.IGNORECASE)
_TAGS = re.compile(r'<[^>]+>')
_SPACES = re.compile(r'[ \t]+')
_BLANK_LINES = re.compile(r'\n\s*\n+')


def html_to_text(html_body: str) -> str:
    """
    Produce a readable plain-text rendering of an HTML email body.

    Example:
        >>> html_to_text("<p>Hello<br />World</p>")
        'Hello\\nWorld'
    """
    text = _BREAK_TAGS.sub('\n', html_body)
    text = _CELL_END.sub(' ', text)
    text = _TAGS.sub('', text)
    text = html.unescape(text)
    text = _SPACES.sub(' ', text)
    lines = [line.strip() for line in text.splitlines()]
    text = '\n'.join(lines)
    return _BLANK_LINES.sub('\n\n', text).strip()


def build_message(
    sender: str,
    recipient: str,
    subject: str,
    html_body: str,
    reply_to: Optional[str] = None,
) -> EmailMessage:
    """
    Build a multipart/alternative email message.

    Args:
        sender: From address
        recipient: To address
        subject: Subject line
        html_body: Rendered HTML body
        reply_to: Optional Reply-To address

    Returns:
        EmailMessage: Message with text/plain and text/html parts

    Raises:
        ValueError: If sender or recipient is empty
    """
    if not sender:
        raise ValueError("Sender address cannot be empty")
    if not recipient:
        raise ValueError("Recipient address cannot be empty")

    msg = EmailMessage()
    msg['From'] = sender
    msg['To'] = recipient
    msg['Subject'] = subject
    msg['Date'] = formatdate(localtime=False)
    msg['Message-ID'] = make_msgid(domain=sender.rsplit('@', 1)[-1])
    if reply_to:
        msg['Reply-To'] = reply_to

    msg.set_content(html_to_text(html_body))
    msg.add_alternative(html_body, subtype='html')

    logger.info(f"Built message: to={recipient}, subject={subject!r}, html={len(html_body)} chars")
    return msg
