"""Test helper utilities for the dispatch worker tests."""

from .fakes import FakeSubscription, FakeTransport
from .seed import seed_notification, seed_user

__all__ = ["FakeSubscription", "FakeTransport", "seed_notification", "seed_user"]
