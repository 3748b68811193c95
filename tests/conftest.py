"""Shared fixtures: file-backed SQLite store, seeded catalog and webhook signing."""

import hashlib
import hmac
import json
import time
from datetime import date

import pytest

from clip_storefront.config import Config
from clip_storefront.database import Database
from clip_storefront.models import Clip, Show, Venue
from clip_storefront.services.payment_gateway import PaymentGateway
from clip_storefront.services.time_controller import TimeController

STRIPE_SECRET_KEY = "sk_test_storefront"
WEBHOOK_SECRET = "whsec_test_storefront"

CONFIG_TEMPLATE = """
store:
  name: Set-Clip
  public_base_url: https://set-clip.test/
  currency: USD
  default_price_cents: 500

downloads:
  max_downloads: 3
  link_ttl_hours: 48
  default_variant: social_subtitled

database:
  url: {database_url}
  echo: false
  auto_create_schema: true

poller:
  max_attempts: 10
  delay_seconds: 0
"""


@pytest.fixture
def config_file(tmp_path):
    """Write a storefront.yaml pointing at a per-test SQLite file."""
    database_url = f"sqlite:///{tmp_path / 'storefront.db'}"
    path = tmp_path / "storefront.yaml"
    path.write_text(CONFIG_TEMPLATE.format(database_url=database_url), encoding="utf-8")
    return path


@pytest.fixture
def config(config_file):
    """Config with payment secrets set and no other environment overrides."""
    return Config(
        str(config_file),
        environ={
            "STRIPE_SECRET_KEY": STRIPE_SECRET_KEY,
            "STRIPE_WEBHOOK_SECRET": WEBHOOK_SECRET,
        },
    )


@pytest.fixture
def database(config):
    """Fresh schema in a per-test SQLite file."""
    db = Database.from_settings(config.database)
    db.create_schema()
    yield db
    db.dispose()


@pytest.fixture
def clock():
    return TimeController()


@pytest.fixture
def gateway():
    """Real gateway; only signature verification is exercised, it never calls out."""
    return PaymentGateway(STRIPE_SECRET_KEY, WEBHOOK_SECRET)


@pytest.fixture
def catalog(database):
    """Seed one venue, two shows and a handful of clips.

    Returns:
        dict of clip IDs by role
    """
    with database.session() as session:
        venue = Venue(name="The Laugh Cellar", slug="laugh-cellar", city="Austin", state="TX")
        older_show = Show(venue=venue, show_date=date(2025, 1, 3), show_name="Open Mic")
        newer_show = Show(venue=venue, show_date=date(2025, 1, 10), show_name="Friday Late")

        full = Clip(
            show=newer_show,
            performer_name="Jane Doe",
            set_number=1,
            duration_seconds=312,
            original_path="clips/2025-01-10/jane-doe-set1.mp4",
            social_path="clips/2025-01-10/jane-doe-set1-social.mp4",
            social_subtitled_path="clips/2025-01-10/jane-doe-set1-social-sub.mp4",
            preview_path="previews/jane-doe-set1.mp4",
            price_cents=None,
        )
        priced = Clip(
            show=older_show,
            performer_name="Jane Doe",
            set_number=2,
            duration_seconds=95,
            original_path="clips/2025-01-03/jane-doe-set2.mp4",
            social_subtitled_path="clips/2025-01-03/jane-doe-set2-social-sub.mp4",
            srt_path="clips/2025-01-03/jane-doe-set2.srt",
            price_cents=800,
        )
        unavailable = Clip(
            show=newer_show,
            performer_name="O'Brien Mac",
            set_number=1,
            original_path="clips/2025-01-10/obrien-set1.mp4",
            is_available=False,
        )
        no_files = Clip(
            show=newer_show,
            performer_name="Sam Empty",
            set_number=3,
        )
        session.add_all([venue, older_show, newer_show, full, priced, unavailable, no_files])
        session.flush()

        return {
            "full": full.id,
            "priced": priced.id,
            "unavailable": unavailable.id,
            "no_files": no_files.id,
        }


@pytest.fixture
def sign_payload():
    """Build a Stripe-Signature header for a payload.

    Usage:
        header = sign_payload(body)
        header = sign_payload(body, secret="other", timestamp=time.time() - 3600)
    """

    def _sign(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp=None) -> str:
        ts = int(timestamp if timestamp is not None else time.time())
        signed = f"{ts}.{payload.decode('utf-8')}".encode("utf-8")
        digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
        return f"t={ts},v1={digest}"

    return _sign


@pytest.fixture
def checkout_completed_event():
    """Build a checkout.session.completed payload (bytes)."""

    def _event(
        session_id: str,
        clip_id=None,
        payment_intent: str = "pi_test_123",
        email: str = "fan@example.com",
        name: str = "Sam Fan",
        amount_total: int = 500,
        currency: str = "usd",
        event_id: str = "evt_completed_1",
    ) -> bytes:
        metadata = {"clip_id": clip_id} if clip_id else {}
        return json.dumps(
            {
                "id": event_id,
                "object": "event",
                "type": "checkout.session.completed",
                "data": {
                    "object": {
                        "id": session_id,
                        "object": "checkout.session",
                        "payment_intent": payment_intent,
                        "customer_details": {"email": email, "name": name},
                        "metadata": metadata,
                        "amount_total": amount_total,
                        "currency": currency,
                    }
                },
            }
        ).encode("utf-8")

    return _event


@pytest.fixture
def payment_failed_event():
    """Build a payment_intent.payment_failed payload (bytes)."""

    def _event(payment_intent: str, event_id: str = "evt_failed_1") -> bytes:
        return json.dumps(
            {
                "id": event_id,
                "object": "event",
                "type": "payment_intent.payment_failed",
                "data": {
                    "object": {
                        "id": payment_intent,
                        "object": "payment_intent",
                        "status": "requires_payment_method",
                    }
                },
            }
        ).encode("utf-8")

    return _event
