# orders/publisher.py
import os
import json
import logging

import pika

logger = logging.getLogger(__name__)

# Se leen SIEMPRE desde variables de entorno (nada hardcodeado)
RABBIT_HOST   = os.getenv("RABBIT_HOST")
RABBIT_PORT   = int(os.getenv("RABBIT_PORT", "5672"))
RABBIT_VHOST  = os.getenv("RABBIT_VHOST", "/")
RABBIT_USER   = os.getenv("RABBIT_USER", "dispatch_user")
RABBIT_PASS   = os.getenv("RABBIT_PASS", "dispatch")
EXCHANGE      = os.getenv("RABBIT_EXCHANGE", "dispatch_events")


def _connection_parameters() -> pika.ConnectionParameters:
    """Devuelve parámetros con timeouts y reintentos cortos.
    No bloquea la request si el broker está caído o lejos."""
    return pika.ConnectionParameters(
        host=RABBIT_HOST,
        port=RABBIT_PORT,
        virtual_host=RABBIT_VHOST,
        credentials=pika.PlainCredentials(RABBIT_USER, RABBIT_PASS),
        heartbeat=30,
        blocked_connection_timeout=5,
        socket_timeout=5,
        connection_attempts=3,
        retry_delay=2.0,
    )


def _publish_many(messages: list[tuple[str, dict]]) -> int:
    """Publica en una sola conexión sin reventar la request si el broker falla.
    Devuelve cuántos mensajes salieron."""
    if not messages:
        return 0
    if not RABBIT_HOST:
        # No hay host configurado → no publicamos, pero tampoco rompemos
        logger.debug("RABBIT_HOST no definido; %d evento(s) omitido(s)", len(messages))
        return 0

    sent = 0
    conn = None
    try:
        conn = pika.BlockingConnection(_connection_parameters())
        ch = conn.channel()
        ch.exchange_declare(exchange=EXCHANGE, exchange_type="topic", durable=True)
        for routing_key, payload in messages:
            ch.basic_publish(
                exchange=EXCHANGE,
                routing_key=routing_key,
                body=json.dumps(payload, default=str).encode("utf-8"),
                properties=pika.BasicProperties(
                    content_type="application/json",
                    delivery_mode=2,  # persistente si la cola es durable
                ),
            )
            sent += 1
    except Exception as e:
        # Loguea y sigue; la notificación es best-effort
        logger.warning("Error publicando %d evento(s): %s", len(messages) - sent, e)
    finally:
        if conn is not None and conn.is_open:
            conn.close()
    return sent


def _publish(routing_key: str, payload: dict) -> int:
    return _publish_many([(routing_key, payload)])


def publish_order_created(order_id, status: str) -> None:
    _publish("order.created", {"order_id": str(order_id), "event_type": "created", "new_status": status})


def publish_order_status_updated(order_id, status: str, version: int, meta: dict | None = None):
    payload = {
        "order_id": str(order_id),
        "event_type": "status_changed",
        "new_status": status,
        "version": int(version),
    }
    if meta:
        payload["meta"] = meta
    _publish("order.status.updated", payload)


def publish_order_claimable(order_id, version: int, partner_ids) -> int:
    """Fan-out: un mensaje por repartidor elegible (online + KYC aprobado).
    El receptor debe tolerar duplicados: solo intenta un claim."""
    payload = {
        "order_id": str(order_id),
        "event_type": "claimable",
        "new_status": "ready_for_pickup",
        "version": int(version),
    }
    return _publish_many([(f"partner.{pid}.order.claimable", payload) for pid in partner_ids])
