import itertools
from datetime import timedelta
from decimal import Decimal

import pytest
from django.core.cache import cache
from django.utils import timezone

from orders import assignment, lifecycle, publisher
from orders.models import OrderStatus
from partners.models import KYCStatus, PartnerProfile

S = OrderStatus

# camino feliz; DISPATCHED se alcanza con claim
HAPPY_PATH = [S.CONFIRMED, S.READY_FOR_PICKUP, S.DISPATCHED, S.OUT_FOR_DELIVERY, S.DELIVERED]


@pytest.fixture(autouse=True)
def _isolated(settings, monkeypatch):
    monkeypatch.setattr(publisher, "RABBIT_HOST", None)
    settings.SLA_BUDGET_MINUTES = 10
    settings.CANCELLATION_WINDOW_SECONDS = 60
    settings.COMMISSION_RATE = "0.15"
    settings.MIN_WITHDRAWAL_AMOUNT = "100"
    settings.ETA_MIN_INTERVAL_SECONDS = 5
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def sent(monkeypatch):
    """Mensajes que habrían salido al broker."""
    messages = []

    def fake_publish_many(batch):
        messages.extend(batch)
        return len(batch)

    monkeypatch.setattr(publisher, "_publish_many", fake_publish_many)
    return messages


@pytest.fixture
def make_partner(db):
    counter = itertools.count(1)

    def _make(kyc=KYCStatus.APPROVED, online=True, name=None):
        return PartnerProfile.objects.create(
            name=name or f"rider-{next(counter)}", kyc_status=kyc, is_online=online
        )

    return _make


@pytest.fixture
def make_order(db, make_partner):
    counter = itertools.count(1)

    def _make(status=S.PENDING, created_at=None, total="1000.00",
              address="27.71720,85.32400", partner=None):
        created_at = created_at or timezone.now()
        order = lifecycle.create_order(
            f"ORD-{next(counter):05d}", "customer-1", Decimal(total), address, created_at=created_at
        )
        when = created_at
        for step in HAPPY_PATH:
            if order.status == status:
                break
            when = when + timedelta(seconds=1)
            if step == S.DISPATCHED:
                partner = partner or make_partner()
                order = assignment.claim(order.pk, partner.pk, now=when)
            else:
                order = lifecycle.transition(order.pk, step, now=when)
        return order

    return _make
