"""Template rendering for notification emails using Jinja2.

Bodies are rendered from the ``email_templates`` package directory with
strict undefined checking, so a missing variable fails the render instead of
producing an email with blanks in it. Only the HTML template is autoescaped.
"""

import logging
from typing import Dict, Optional

from jinja2 import Environment, PackageLoader, StrictUndefined, TemplateError, select_autoescape

from dispatch_worker.domain.models import PendingDelivery
from dispatch_worker.utils.timestamps import utc_now

from .models import NotificationTemplateError

logger = logging.getLogger(__name__)

DEFAULT_DASHBOARD_URL = "https://blood-care.vercel.app"


class TemplateRenderer:
    """Renders the plain text and HTML bodies of a notification email.

    Templates are loaded once by the Jinja2 environment and cached, so a
    single renderer is shared by all worker threads.
    """

    def __init__(
        self,
        template_dir: str = "email_templates",
        text_template: str = "notification_body.txt.j2",
        html_template: str = "notification_body.html.j2",
        dashboard_url: str = DEFAULT_DASHBOARD_URL,
    ):
        """
        Args:
            template_dir: Directory name within the dispatch_worker.notifications package
            text_template: Filename of the plain text body template
            html_template: Filename of the HTML body template
            dashboard_url: Link target of the HTML "Go to Dashboard" button
        """
        self.text_template_name = text_template
        self.html_template_name = html_template
        self.dashboard_url = dashboard_url

        self.env = Environment(
            loader=PackageLoader("dispatch_worker.notifications", template_dir),
            autoescape=select_autoescape(enabled_extensions=("html.j2",), default=False),
            undefined=StrictUndefined,
            keep_trailing_newline=False,
        )

        logger.debug(f"Initialized TemplateRenderer with templates from {template_dir}")

    def render(self, context: Dict, include_html: bool = True) -> Dict[str, Optional[str]]:
        """Render the email bodies with the provided context.

        Args:
            context: Template variables (see ``build_context``)
            include_html: Also render the HTML alternative

        Returns:
            Dictionary with ``text_body`` and ``html_body`` (None when
            ``include_html`` is False)

        Raises:
            NotificationTemplateError: If template rendering fails
        """
        try:
            text_body = self.env.get_template(self.text_template_name).render(context)

            html_body = None
            if include_html:
                html_body = self.env.get_template(self.html_template_name).render(context)

            return {"text_body": text_body, "html_body": html_body}

        except TemplateError as e:
            error_msg = f"Template rendering failed: {e}"
            logger.error(error_msg, exc_info=True)
            raise NotificationTemplateError(error_msg) from e
        except Exception as e:
            error_msg = f"Unexpected error during template rendering: {e}"
            logger.error(error_msg, exc_info=True)
            raise NotificationTemplateError(error_msg) from e

    def build_context(self, delivery: PendingDelivery) -> Dict:
        """Template variables for one pending delivery."""
        notification = delivery.notification
        created_at = notification.created_at or utc_now()

        return {
            "full_name": delivery.recipient.display_name,
            "title": notification.title,
            "message": notification.body,
            "urgency": notification.urgency.value if notification.urgency else None,
            "dashboard_url": self.dashboard_url,
            "year": created_at.year,
        }
