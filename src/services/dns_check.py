"""
Email domain verification via DNS MX lookup.

A syntactically valid address says nothing about whether its domain can
receive mail. This module asks DNS for the domain's MX records and treats
any resolver failure as "not deliverable".
"""

import logging
from typing import Optional

import dns.exception
import dns.resolver

logger = logging.getLogger(__name__)


def extract_domain(email: str) -> str:
    """
    Return the part of an address after the last '@'.

    Example:
        >>> extract_domain("someone@example.com")
        'example.com'
    """
    if not email or '@' not in email:
        return ''
    return email.rsplit('@', 1)[1].strip().rstrip('.')


class DomainVerifier:
    """
    Checks that an email domain publishes at least one MX record.

    Fails closed: NXDOMAIN, no answer, timeouts and malformed names all
    return False instead of raising.
    """

    def __init__(self, timeout: float = 5.0, resolver: Optional[dns.resolver.Resolver] = None):
        """
        Args:
            timeout: Total seconds allowed for one lookup
            resolver: Resolver to use (default: system configuration)
        """
        self.timeout = timeout
        self._resolver = resolver

    @property
    def resolver(self) -> dns.resolver.Resolver:
        # Reads /etc/resolv.conf, so created on first use
        if self._resolver is None:
            self._resolver = dns.resolver.Resolver()
        return self._resolver

    def has_mx_record(self, email: str) -> bool:
        """
        Check whether the domain of `email` can receive mail.

        Args:
            email: A syntactically valid email address

        Returns:
            bool: True if at least one MX record exists, False otherwise
        """
        domain = extract_domain(email)
        if not domain:
            logger.warning("MX check skipped: address has no domain part")
            return False

        try:
            answers = self.resolver.resolve(domain, 'MX', lifetime=self.timeout)
        except dns.exception.DNSException as e:
            logger.warning(f"MX lookup failed for {domain}: {e.__class__.__name__}")
            return False

        count = len(answers)
        logger.info(f"MX lookup for {domain}: {count} record(s)")
        return count > 0
