"""
Tests for the swap engine's collaborators: subscription gate, listing
directory and the notification sink.
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from nestswap.core.exceptions import PaymentRequiredException
from nestswap.database import Base
from nestswap.models import User
from nestswap.models.notification import NotificationType
from nestswap.repositories import NotificationRepository
from nestswap.services.listing_directory import ListingInfo, SqlListingDirectory
from nestswap.services.notification_service import NotificationService, render_message
from nestswap.services.subscription_service import SubscriptionService


class TestSubscriptionService:
    @pytest.mark.parametrize(
        "status, entitled",
        [
            ("active", True),
            ("trialing", True),
            ("past_due", False),
            ("canceled", False),
            ("incomplete", False),
            ("none", False),
        ],
    )
    def test_entitlement(self, db, make_user, status, entitled):
        user = make_user(subscription_status=status)
        service = SubscriptionService(db)
        assert service.is_user_subscribed(user.id) is entitled

    def test_unknown_user_is_not_subscribed(self, db):
        assert SubscriptionService(db).is_user_subscribed("nobody") is False

    def test_require_subscription_raises_payment_required(self, db, make_user):
        user = make_user(subscription_status="canceled")
        with pytest.raises(PaymentRequiredException) as exc_info:
            SubscriptionService(db).require_subscription(user.id)
        assert exc_info.value.code == "SUB_REQUIRED"


class TestSqlListingDirectory:
    def test_returns_owner_and_active_flag(self, db, make_user, make_listing):
        owner = make_user()
        listing = make_listing(owner, title="Clifftop Caravan", is_active=False)

        info = SqlListingDirectory(db).get_listing(listing.id)

        assert info == ListingInfo(
            id=listing.id, owner_id=owner.id, is_active=False, title="Clifftop Caravan"
        )

    def test_missing_listing(self, db):
        assert SqlListingDirectory(db).get_listing("missing") is None


class TestNotificationService:
    @pytest.fixture
    def file_sessions(self, tmp_path):
        engine = create_engine(f"sqlite:///{tmp_path / 'notify.db'}", future=True)
        Base.metadata.create_all(engine)
        factory = sessionmaker(bind=engine, expire_on_commit=False, future=True)
        with factory() as session:
            session.add(User(id="user-1", name="Alex", subscription_status="active"))
            session.commit()
        yield factory
        engine.dispose()

    def test_records_in_app_notification(self, file_sessions):
        service = NotificationService(session_factory=file_sessions)

        service.notify(
            "user-1",
            NotificationType.SWAP_REQUEST_DECLINED.value,
            {"swap_id": None, "listing_title": "Harbour Cabin"},
        )

        with file_sessions() as session:
            notifications = NotificationRepository(session).list_for_user("user-1")
        assert len(notifications) == 1
        notification = notifications[0]
        assert notification.user_id == "user-1"
        assert notification.title == "Swap Request Declined"
        assert notification.message == "Your swap request for Harbour Cabin has been declined."
        assert notification.is_read is False

    def test_failures_are_swallowed(self):
        session = MagicMock()
        session.flush.side_effect = RuntimeError("disk full")
        service = NotificationService(session_factory=lambda: session)

        service.notify("user-1", NotificationType.SWAP_CANCELLED.value, {})

        session.rollback.assert_called_once()
        session.close.assert_called_once()

    def test_unknown_event_is_ignored(self):
        factory = MagicMock()
        NotificationService(session_factory=factory).notify("user-1", "swap_exploded", {})
        factory.assert_not_called()

    @pytest.mark.parametrize(
        "event, payload, expected",
        [
            (
                NotificationType.SWAP_REQUEST_RECEIVED,
                {},
                "Someone wants to swap with your property!",
            ),
            (
                NotificationType.SWAP_REQUEST_ACCEPTED,
                {"listing_title": "Dune Tent"},
                "Your swap request for Dune Tent has been accepted!",
            ),
            (
                NotificationType.SWAP_REQUEST_ACCEPTED,
                {"listing_title": "Dune Tent", "recipient_role": "requested_user"},
                "You accepted the swap for Dune Tent.",
            ),
            (
                NotificationType.SWAP_CANCELLED,
                {"listing_title": "Dune Tent"},
                "The swap for Dune Tent has been cancelled.",
            ),
        ],
    )
    def test_message_copy(self, event, payload, expected):
        assert render_message(event, payload) == expected
