import json
import logging

import pika
import pytest

from orders import publisher


class _Channel:
    def __init__(self):
        self.published = []

    def exchange_declare(self, exchange, exchange_type, durable):
        self.exchange = (exchange, exchange_type, durable)

    def basic_publish(self, exchange, routing_key, body, properties):
        self.published.append((routing_key, json.loads(body)))


class _Connection:
    def __init__(self, params):
        self.params = params
        self.is_open = True
        self.ch = _Channel()

    def channel(self):
        return self.ch

    def close(self):
        self.is_open = False


@pytest.fixture
def broker(monkeypatch):
    conns = []

    def connect(params):
        conns.append(_Connection(params))
        return conns[-1]

    monkeypatch.setattr(publisher, "RABBIT_HOST", "rabbit.local")
    monkeypatch.setattr(publisher.pika, "BlockingConnection", connect)
    return conns


def test_claimable_fan_out_uses_one_connection(broker):
    sent = publisher.publish_order_claimable("o-1", 2, [7, 9])

    assert sent == 2
    assert len(broker) == 1
    assert broker[0].ch.exchange == ("dispatch_events", "topic", True)
    keys = [key for key, _ in broker[0].ch.published]
    assert keys == ["partner.7.order.claimable", "partner.9.order.claimable"]
    assert broker[0].ch.published[0][1]["version"] == 2
    assert not broker[0].is_open


def test_status_update_payload(broker):
    publisher.publish_order_status_updated("o-1", "dispatched", 3, meta={"partner_id": "7"})
    key, payload = broker[0].ch.published[0]
    assert key == "order.status.updated"
    assert payload == {
        "order_id": "o-1",
        "event_type": "status_changed",
        "new_status": "dispatched",
        "version": 3,
        "meta": {"partner_id": "7"},
    }


def test_broker_down_is_logged_not_raised(monkeypatch, caplog):
    def refuse(params):
        raise pika.exceptions.AMQPConnectionError("connection refused")

    monkeypatch.setattr(publisher, "RABBIT_HOST", "rabbit.local")
    monkeypatch.setattr(publisher.pika, "BlockingConnection", refuse)

    with caplog.at_level(logging.WARNING, logger="orders.publisher"):
        assert publisher.publish_order_claimable("o-1", 1, [1]) == 0
    assert "Error publicando" in caplog.text


def test_without_host_nothing_is_sent(monkeypatch):
    def explode(params):
        raise AssertionError("no debería conectar")

    monkeypatch.setattr(publisher.pika, "BlockingConnection", explode)
    assert publisher.publish_order_claimable("o-1", 1, [1, 2]) == 0
