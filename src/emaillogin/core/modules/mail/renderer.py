"""Template rendering for proof mail."""

import structlog
from liquid import Environment

from emaillogin.core.modules.mail.models import (
    PROOF_HTML_DEFAULT_TEMPLATE,
    PROOF_SUBJECT_DEFAULT_TEMPLATE,
    PROOF_TEXT_DEFAULT_TEMPLATE,
    Mail,
    ProofMailContext,
)

logger = structlog.get_logger(__name__)


def render_mail_template(template: str, context: ProofMailContext) -> str:
    """Render a Liquid template with the given context.

    Raises:
        ValueError: If template rendering fails
    """
    try:
        env = Environment()
        tmpl = env.from_string(template)
        return tmpl.render(**context.model_dump(mode="json"))
    except Exception as e:
        logger.exception("template_render_failed", error=str(e), template=template[:100])
        raise ValueError(f"Failed to render template: {e}") from e


def render_proof_mail(
    context: ProofMailContext,
    subject_template: str | None = None,
    text_template: str | None = None,
    html_template: str | None = None,
) -> Mail:
    """Build the proof mail for an address, falling back to the default templates."""
    return Mail(
        to=context.email,
        subject=render_mail_template(subject_template or PROOF_SUBJECT_DEFAULT_TEMPLATE, context),
        text=render_mail_template(text_template or PROOF_TEXT_DEFAULT_TEMPLATE, context),
        html=render_mail_template(html_template or PROOF_HTML_DEFAULT_TEMPLATE, context),
    )
