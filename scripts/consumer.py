# scripts/consumer.py
"""Escucha del lado del repartidor.

Se suscribe a las órdenes "claimable" de un repartidor y a los cambios de
estado. Con AUTO_CLAIM_URL definido intenta el claim por HTTP; un 409 es normal
(otro repartidor ganó) y el mensaje se descarta. Los duplicados son inofensivos.
"""
import os, json, pika, requests

RABBIT_HOST   = os.getenv("RABBIT_HOST", "127.0.0.1")
RABBIT_PORT   = int(os.getenv("RABBIT_PORT", "5672"))
RABBIT_USER   = os.getenv("RABBIT_USER", "guest")
RABBIT_PASS   = os.getenv("RABBIT_PASS", "guest")
RABBIT_VHOST  = os.getenv("RABBIT_VHOST", "/")
EXCHANGE      = os.getenv("RABBIT_EXCHANGE", "dispatch_events")
PARTNER_ID    = os.getenv("PARTNER_ID", "1")
AUTO_CLAIM_URL = os.getenv("AUTO_CLAIM_URL")  # ej: http://127.0.0.1:8000

BIND_KEYS = [f"partner.{PARTNER_ID}.order.claimable", "order.status.updated"]


def try_claim(session: requests.Session, order_id: str) -> bool:
    url = f"{AUTO_CLAIM_URL.rstrip('/')}/orders/{order_id}/claim"
    try:
        r = session.post(url, json={"partner_id": PARTNER_ID}, timeout=5)
    except requests.RequestException as exc:
        print(f"[claim] error {order_id}: {exc}")
        return False
    if r.status_code == 200:
        print(f"[claim] ✅ {order_id} es nuestra")
        return True
    print(f"[claim] {order_id} -> {r.status_code} {r.text[:80]}")
    return False


def main():
    creds = pika.PlainCredentials(RABBIT_USER, RABBIT_PASS)
    params = pika.ConnectionParameters(
        host=RABBIT_HOST, port=RABBIT_PORT, virtual_host=RABBIT_VHOST,
        credentials=creds, heartbeat=30, blocked_connection_timeout=10
    )
    conn = pika.BlockingConnection(params)
    ch = conn.channel()
    ch.exchange_declare(exchange=EXCHANGE, exchange_type="topic", durable=True)

    # Cola exclusiva y autodelete: el fan-out es best-effort
    q = ch.queue_declare(queue="", exclusive=True, auto_delete=True)
    qname = q.method.queue

    for key in BIND_KEYS:
        ch.queue_bind(exchange=EXCHANGE, queue=qname, routing_key=key)

    session = requests.Session()
    seen = set()

    print(f"👂 Repartidor {PARTNER_ID} escuchando {BIND_KEYS} en {EXCHANGE} (cola {qname}). Ctrl+C para salir.")
    def on_msg(ch_, method, props, body):
        payload = json.loads(body.decode("utf-8"))
        print(f"[x] {method.routing_key} {payload}")
        if AUTO_CLAIM_URL and payload.get("event_type") == "claimable":
            key = (payload["order_id"], payload.get("version"))
            if key not in seen:
                seen.add(key)
                try_claim(session, payload["order_id"])
        ch_.basic_ack(delivery_tag=method.delivery_tag)

    ch.basic_consume(queue=qname, on_message_callback=on_msg, auto_ack=False)
    try:
        ch.start_consuming()
    except KeyboardInterrupt:
        print("\nCerrando…")
        ch.stop_consuming()
        conn.close()

if __name__ == "__main__":
    main()
