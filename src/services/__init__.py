"""
Service functions for Lambda handler operations.

This package contains reusable building blocks: email composition, mail
transports, DNS checks, email templates and API Gateway event helpers.
"""

__all__ = ['dns_check', 'email', 'http', 'mailer', 'templates']
