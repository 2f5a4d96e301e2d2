from datetime import datetime, timedelta, timezone as dt_timezone
from types import SimpleNamespace

import pytest

from orders import sla
from orders.models import OrderStatus

S = OrderStatus
T0 = datetime(2026, 1, 1, 12, 0, tzinfo=dt_timezone.utc)


def _order(status=S.DISPATCHED, accepted=None, delivered=None):
    return SimpleNamespace(
        pk="o-1",
        status=status,
        created_at=T0,
        accepted_at=accepted,
        delivered_at=delivered,
        delivery_duration_minutes=None,
    )


def test_overdue_after_budget_while_dispatched():
    order = _order(S.DISPATCHED)
    assert sla.is_overdue(order, T0 + timedelta(minutes=11))
    assert sla.remaining(order, T0 + timedelta(minutes=11)) == timedelta(0)


@pytest.mark.parametrize("offset", [0, 1, 59, 300, 599, 600])
def test_elapsed_plus_remaining_is_budget(offset):
    order = _order(S.OUT_FOR_DELIVERY)
    now = T0 + timedelta(seconds=offset)
    assert not sla.is_overdue(order, now)
    assert sla.elapsed(order, now) + sla.remaining(order, now) == sla.total_budget()


def test_budget_comes_from_settings(settings):
    settings.SLA_BUDGET_MINUTES = 20
    order = _order(S.DISPATCHED)
    assert not sla.is_overdue(order, T0 + timedelta(minutes=11))


def test_delivered_order_freezes_and_is_never_overdue():
    order = _order(S.DELIVERED, accepted=T0 + timedelta(minutes=2), delivered=T0 + timedelta(minutes=12, seconds=30))
    later = T0 + timedelta(hours=3)
    assert sla.elapsed(order, later) == timedelta(minutes=12, seconds=30)
    assert not sla.is_overdue(order, later)
    assert sla.final_duration_minutes(order) == 12.5
    assert sla.partner_remaining(order, later) is None


def test_final_duration_requires_delivery():
    with pytest.raises(ValueError):
        sla.final_duration_minutes(_order(S.OUT_FOR_DELIVERY))


def test_partner_clock_starts_at_acceptance():
    order = _order(S.DISPATCHED, accepted=T0 + timedelta(minutes=3))
    assert sla.partner_remaining(order, T0 + timedelta(minutes=5)) == timedelta(minutes=5)
    assert sla.partner_remaining(order, T0 + timedelta(minutes=30)) == timedelta(0)
    assert sla.partner_remaining(_order(S.READY_FOR_PICKUP), T0) is None


def test_partner_clock_does_not_change_overdue():
    order = _order(S.DISPATCHED, accepted=T0 + timedelta(minutes=9))
    now = T0 + timedelta(minutes=10, seconds=1)
    assert sla.is_overdue(order, now)
    assert sla.partner_remaining(order, now) == timedelta(0)


@pytest.mark.parametrize("seconds, text", [(0, "00:00"), (125, "02:05"), (-65, "-01:05"), (600, "10:00")])
def test_format_clock(seconds, text):
    assert sla.format_clock(seconds) == text


def test_snapshot():
    order = _order(S.DISPATCHED, accepted=T0 + timedelta(minutes=1))
    snap = sla.snapshot(order, T0 + timedelta(minutes=4))
    assert snap["elapsed_seconds"] == 240
    assert snap["remaining_seconds"] == 360
    assert snap["remaining"] == "06:00"
    assert snap["overdue"] is False
    assert snap["running"] is True
    assert snap["partner_remaining_seconds"] == 360
