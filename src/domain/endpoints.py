"""
Endpoint definitions for the shared submission pipeline.

Each endpoint pairs a schema with the emails it sends and the messages it
returns. The pipeline itself is identical for every endpoint.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple, Type

from pydantic import BaseModel

from .models import OutgoingEmail
from .schemas import ContactFormSubmission, NewsletterSubscription

CONTACT_ADMIN_SUBJECT = "New Contact Form Submission - {site}"
CONTACT_PRIORITY_SUBJECT = "[HIGH PRIORITY] Contact Form Submission - {site}"
CONTACT_CONFIRMATION_SUBJECT = "Thank you for contacting {site} - We have received your message"
NEWSLETTER_ADMIN_SUBJECT = "New Newsletter Subscription from {email}"
NEWSLETTER_CONFIRMATION_SUBJECT = "We've received your newsletter subscription!"

NOT_PROVIDED = "Not provided"


@dataclass(frozen=True)
class EndpointSpec:
    """
    Endpoint-specific parts of the pipeline.

    Attributes:
        name: Endpoint name used in logs
        schema: Pydantic model validating the request body
        compose: Builds the outgoing emails for a valid submission
        methods: HTTP methods served (OPTIONS is always served)
        verify_domain: Run the MX check on the submitted email
        success_message: Body message on success
        failure_message: Body message on delivery failure
        validation_message: Body message on invalid input (None: first field error)
        liveness_message: GET body message (None: GET not served)
    """
    name: str
    schema: Type[BaseModel]
    compose: Callable[..., List[OutgoingEmail]]
    methods: Tuple[str, ...] = ('POST',)
    verify_domain: bool = False
    success_message: str = "Submission successful"
    failure_message: str = "Submission failed"
    validation_message: Optional[str] = None
    liveness_message: Optional[str] = None


def compose_contact_emails(submission: ContactFormSubmission, settings, templates) -> List[OutgoingEmail]:
    """
    Build the operator notice and the submitter confirmation.

    Priority submissions get a distinct subject, banner and priority label.
    """
    site = settings.site_name
    priority = submission.priority
    subject = (CONTACT_PRIORITY_SUBJECT if priority else CONTACT_ADMIN_SUBJECT).format(site=site)
    banner = templates.load('priority_high.html' if priority else 'priority_normal.html')

    fields = {
        'name': submission.name or NOT_PROVIDED,
        'email': submission.email,
        'phone': submission.phone,
        'message': submission.message,
        'site_name': site,
        'site_url': settings.site_url,
    }

    admin_html = templates.render(
        'contact_admin.html',
        raw={'priority_banner': banner},
        subject=subject,
        priority_label="High / Emergency" if priority else "Normal",
        **fields,
    )
    confirmation_html = templates.render(
        'contact_confirmation.html',
        greeting_name=f" {submission.name}" if submission.name else '',
        **fields,
    )

    return [
        OutgoingEmail(
            recipient=settings.receiver_email,
            subject=subject,
            html_body=admin_html,
            reply_to=submission.email,
        ),
        OutgoingEmail(
            recipient=submission.email,
            subject=CONTACT_CONFIRMATION_SUBJECT.format(site=site),
            html_body=confirmation_html,
            reply_to=settings.receiver_email,
        ),
    ]


def compose_newsletter_emails(submission: NewsletterSubscription, settings, templates) -> List[OutgoingEmail]:
    """Build the operator notice and the subscriber confirmation."""
    fields = {
        'email': submission.email,
        'site_name': settings.site_name,
    }

    return [
        OutgoingEmail(
            recipient=settings.receiver_email,
            subject=NEWSLETTER_ADMIN_SUBJECT.format(email=submission.email),
            html_body=templates.render('newsletter_admin.html', **fields),
            reply_to=submission.email,
        ),
        OutgoingEmail(
            recipient=submission.email,
            subject=NEWSLETTER_CONFIRMATION_SUBJECT,
            html_body=templates.render('newsletter_confirmation.html', **fields),
            reply_to=settings.receiver_email,
        ),
    ]


CONTACT_FORM = EndpointSpec(
    name='contact_form',
    schema=ContactFormSubmission,
    compose=compose_contact_emails,
    methods=('POST',),
    verify_domain=True,
    success_message="Submission successful",
    failure_message="Submission failed",
    validation_message="Validation failed.",
)

NEWSLETTER = EndpointSpec(
    name='newsletter',
    schema=NewsletterSubscription,
    compose=compose_newsletter_emails,
    methods=('GET', 'POST'),
    verify_domain=False,
    success_message="Subscription successful",
    failure_message="Subscription failed",
    validation_message=None,
    liveness_message="Newsletter API is running.",
)
