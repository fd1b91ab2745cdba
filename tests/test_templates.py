"""Unit tests for email template rendering."""

from datetime import datetime, timezone

import pytest

from dispatch_worker.domain.models import Notification, PendingDelivery, Recipient
from dispatch_worker.notifications.models import NotificationTemplateError
from dispatch_worker.notifications.templates import TemplateRenderer


@pytest.fixture
def renderer():
    return TemplateRenderer()


@pytest.fixture
def delivery():
    return PendingDelivery(
        notification=Notification(
            id="N1",
            recipient_id="U1",
            title="Urgent: O- needed",
            body="Please respond",
            urgency="High",
            created_at=datetime(2025, 3, 1, tzinfo=timezone.utc),
        ),
        recipient=Recipient(id="U1", email="a@x.org", display_name="Ana"),
    )


def test_text_body_matches_fixed_layout(renderer, delivery):
    bodies = renderer.render(renderer.build_context(delivery))

    assert bodies["text_body"] == "Hello Ana,\n\nPlease respond\n\nRegards,\nBlood Connect Team"


def test_text_body_is_not_escaped(renderer, delivery):
    delivery.notification.body = "Blood type A+ & O- <urgent>"

    bodies = renderer.render(renderer.build_context(delivery))

    assert "Blood type A+ & O- <urgent>" in bodies["text_body"]


def test_html_body(renderer, delivery):
    bodies = renderer.render(renderer.build_context(delivery))
    html = bodies["html_body"]

    assert "Urgent: O- needed" in html
    assert "Hello Ana," in html
    assert "Please respond" in html
    assert 'href="https://blood-care.vercel.app"' in html
    assert "Urgency: High" in html
    assert "&copy; 2025 BloodConnect" in html


def test_html_body_is_escaped(renderer, delivery):
    delivery.recipient.display_name = "<script>alert(1)</script>"

    html = renderer.render(renderer.build_context(delivery))["html_body"]

    assert "<script>" not in html
    assert "&lt;script&gt;" in html


def test_html_can_be_skipped(renderer, delivery):
    bodies = renderer.render(renderer.build_context(delivery), include_html=False)

    assert bodies["html_body"] is None
    assert bodies["text_body"].startswith("Hello Ana,")


def test_custom_dashboard_url(delivery):
    renderer = TemplateRenderer(dashboard_url="https://donors.example.org/dashboard")

    html = renderer.render(renderer.build_context(delivery))["html_body"]

    assert 'href="https://donors.example.org/dashboard"' in html


def test_missing_variable_raises(renderer):
    with pytest.raises(NotificationTemplateError, match="Template rendering failed"):
        renderer.render({"full_name": "Ana"})


def test_missing_template_raises(delivery):
    renderer = TemplateRenderer(text_template="does_not_exist.txt.j2")

    with pytest.raises(NotificationTemplateError):
        renderer.render(renderer.build_context(delivery))
