"""Carrera de claims contra la API de despacho.

Crea órdenes, las lleva a ready_for_pickup y lanza N repartidores en hilos que
intentan capturar cada orden al mismo tiempo. Al final verifica que cada orden
tenga exactamente un ganador.

* HTTP_BASE_URL: URL base de la API, ej. http://127.0.0.1:8000
* PARTNER_IDS: ids separados por coma de repartidores online con KYC aprobado
* RACE_ORDERS: cuántas órdenes crear (default 20)
"""
from __future__ import annotations

import os
import random
import string
import threading
import time
from typing import Dict, List
from urllib.parse import urljoin

import requests

HTTP_BASE_URL = os.getenv("HTTP_BASE_URL", "http://127.0.0.1:8000")
PARTNER_IDS = [p.strip() for p in os.getenv("PARTNER_IDS", "1,2").split(",") if p.strip()]
RACE_ORDERS = int(os.getenv("RACE_ORDERS", "20"))
HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "5"))

PREPARE_FLOW = ["confirmed", "ready_for_pickup"]


def rand_order_number(prefix: str = "ORD", length: int = 6) -> str:
    return f"{prefix}-" + "".join(random.choices(string.ascii_uppercase + string.digits, k=length))


def prepare_order(session: requests.Session) -> str:
    payload = {
        "order_number": rand_order_number(),
        "customer_id": "race-customer",
        "total_amount": "1000.00",
        "delivery_address": f"{27.7 + random.random() / 100:.5f},{85.3 + random.random() / 100:.5f}",
    }
    r = session.post(urljoin(HTTP_BASE_URL, "/orders"), json=payload, timeout=HTTP_TIMEOUT)
    r.raise_for_status()
    order_id = r.json()["id"]
    for status in PREPARE_FLOW:
        r = session.put(urljoin(HTTP_BASE_URL, f"/orders/{order_id}/status"), json={"status": status}, timeout=HTTP_TIMEOUT)
        r.raise_for_status()
    return order_id


def racer(partner_id: str, order_id: str, start: threading.Barrier, results: Dict[str, List[str]], lock: threading.Lock) -> None:
    session = requests.Session()
    start.wait()
    try:
        r = session.post(urljoin(HTTP_BASE_URL, f"/orders/{order_id}/claim"), json={"partner_id": partner_id}, timeout=HTTP_TIMEOUT)
    except requests.RequestException as exc:
        print(f"[race:{partner_id}] error {order_id}: {exc}")
        return
    if r.status_code == 200:
        with lock:
            results.setdefault(order_id, []).append(partner_id)


def main() -> int:
    session = requests.Session()
    results: Dict[str, List[str]] = {}
    lock = threading.Lock()
    started = time.monotonic()

    print(f"[info] {RACE_ORDERS} órdenes, {len(PARTNER_IDS)} repartidores contra {HTTP_BASE_URL}")
    order_ids = [prepare_order(session) for _ in range(RACE_ORDERS)]

    for order_id in order_ids:
        barrier = threading.Barrier(len(PARTNER_IDS))
        threads = [
            threading.Thread(target=racer, args=(pid, order_id, barrier, results, lock), daemon=True)
            for pid in PARTNER_IDS
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=HTTP_TIMEOUT * 2)

    broken = {oid: winners for oid, winners in results.items() if len(winners) != 1}
    unclaimed = [oid for oid in order_ids if oid not in results]
    print(f"[info] {len(results)} órdenes capturadas en {time.monotonic() - started:.1f}s")
    if unclaimed:
        print(f"[warn] sin ganador: {unclaimed}")
    if broken:
        print(f"[FAIL] más de un ganador: {broken}")
        return 1
    print("[ok] cada orden tuvo exactamente un ganador")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
