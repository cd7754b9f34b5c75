from pydantic import BaseModel, Field


class Mail(BaseModel):
    """Outgoing message handed to a mail transport."""

    to: str
    subject: str
    text: str
    html: str


class ProofMailContext(BaseModel):
    """Variables available to proof mail templates."""

    name: str = Field(..., description="Site name shown in the subject")
    email: str = Field(..., description="Address being proved")
    token: str = Field(..., description="Bearer token of the proof session")
    root_url: str = Field(..., description="Base URL the login link points to")


# Default Liquid templates for proof mail
PROOF_SUBJECT_DEFAULT_TEMPLATE = "[{{name}}] Identity verification"

PROOF_TEXT_DEFAULT_TEMPLATE = (
    "Hi!\n\n"
    "You can confirm that you own this email address by clicking on this link:\n\n"
    "{{root_url}}login?token={{token}}\n\n"
    "Please point your browser to that URL and you will be good to go!\n\n"
    "Cheers!"
)

PROOF_HTML_DEFAULT_TEMPLATE = (
    "<p>Hi!</p>\n\n"
    "<p>You can confirm that you own this email address by clicking "
    '<a href="{{root_url | escape}}login?token={{token | escape}}">here</a>.</p>\n'
    "<p>Cheers!</p>"
)
