"""
Garment Ledger Load Testing with Locust

Run against a server seeded with `flask ledger seed-demo`:
    locust -f tests/stress/locustfile.py --host http://127.0.0.1:5001

Or headless:
    locust -f tests/stress/locustfile.py --host http://127.0.0.1:5001 \
           --users 20 --spawn-rate 4 --run-time 60s --headless

Scanner users hammer the same few items on purpose: the interesting result
is not throughput but that no item is ever oversold. After the run the
summary calls /api/items/<id>/verify for every contested item.

Pass thresholds:
- p95 response time < 500ms for reads
- p95 response time < 1000ms for writes
- Unexpected error rate < 1% (409 insufficient_stock is expected, not an error)
- Every contested item verifies
"""

import os
import time
import random
import uuid
from typing import Dict, List

import httpx
from locust import HttpUser, task, between, events


# =============================================================================
# CONFIGURATION
# =============================================================================

CONTESTED_ITEMS = [
    item.strip()
    for item in os.environ.get("STRESS_ITEMS", "FAB-000001,CUT-000001").split(",")
    if item.strip()
]
CUTTABLE_FABRIC = os.environ.get("STRESS_FABRIC", "FAB-000001")


# =============================================================================
# METRICS TRACKING
# =============================================================================

class MetricsCollector:
    """Per-endpoint latency and outcome counts."""

    def __init__(self):
        self.request_counts: Dict[str, int] = {}
        self.error_counts: Dict[str, int] = {}
        self.refused_counts: Dict[str, int] = {}
        self.response_times: Dict[str, List[float]] = {}

    def record(self, name: str, response_time: float, status_code: int, ok_codes=(200, 201)):
        if name not in self.request_counts:
            self.request_counts[name] = 0
            self.error_counts[name] = 0
            self.refused_counts[name] = 0
            self.response_times[name] = []

        self.request_counts[name] += 1
        if status_code == 409:
            self.refused_counts[name] += 1
        elif status_code not in ok_codes:
            self.error_counts[name] += 1
        self.response_times[name].append(response_time)

    def get_summary(self) -> Dict:
        summary = {}
        for name in self.request_counts:
            times = sorted(self.response_times[name])
            count = len(times)
            if count == 0:
                continue

            p50_idx = int(count * 0.50)
            p95_idx = int(count * 0.95)

            summary[name] = {
                "count": self.request_counts[name],
                "errors": self.error_counts[name],
                "refused": self.refused_counts[name],
                "error_rate": self.error_counts[name] / self.request_counts[name] * 100,
                "avg_ms": sum(times) / count,
                "p50_ms": times[p50_idx] if p50_idx < count else times[-1],
                "p95_ms": times[p95_idx] if p95_idx < count else times[-1],
            }
        return summary


metrics = MetricsCollector()


# =============================================================================
# USER BEHAVIORS
# =============================================================================

class LedgerUser(HttpUser):
    """Base user; every write carries an X-Actor header."""
    wait_time = between(0.1, 0.5)
    abstract = True

    actor: str = "load-test"

    def on_start(self):
        self.actor = f"{self.__class__.__name__.lower()}-{uuid.uuid4().hex[:6]}"

    def get_headers(self) -> Dict:
        return {"Content-Type": "application/json", "X-Actor": self.actor}

    def timed_post(self, name: str, url: str, payload: Dict):
        start = time.time()
        response = self.client.post(url, json=payload, headers=self.get_headers(), name=name)
        metrics.record(name, (time.time() - start) * 1000, response.status_code)
        return response


class ScannerUser(LedgerUser):
    """
    QR scanner at a workstation: small stock_out and stock_in movements on
    the same items, each with its own idempotency key. Some scans are
    resent to exercise replay.
    """
    weight = 4

    @task(6)
    def scan_out(self):
        key = f"scan-{uuid.uuid4().hex}"
        payload = {
            "item_id": random.choice(CONTESTED_ITEMS),
            "amount": round(random.uniform(0.1, 2.0), 3),
            "source": "qr_scanner",
            "idempotency_key": key,
        }
        response = self.timed_post("stock/stock_out", "/api/stock/stock_out", payload)
        if response.status_code == 201 and random.random() < 0.2:
            # resend, as a scanner does after a dropped acknowledgement
            self.timed_post("stock/stock_out_replay", "/api/stock/stock_out", payload)

    @task(2)
    def scan_in(self):
        self.timed_post("stock/stock_in", "/api/stock/stock_in", {
            "item_id": random.choice(CONTESTED_ITEMS),
            "amount": round(random.uniform(1.0, 5.0), 3),
            "source": "qr_scanner",
            "idempotency_key": f"scan-{uuid.uuid4().hex}",
        })


class CutterUser(LedgerUser):
    """Cutting table: cuts small batches from the contested fabric."""
    weight = 1

    @task
    def cut(self):
        self.timed_post("stock/cut", "/api/stock/cut", {
            "fabric_id": CUTTABLE_FABRIC,
            "piece_length": round(random.uniform(0.3, 1.0), 2),
            "piece_width": round(random.uniform(0.3, 1.0), 2),
            "piece_count": random.randint(1, 5),
            "idempotency_key": f"cut-{uuid.uuid4().hex}",
        })


class ReportingUser(LedgerUser):
    """Office reads: transaction pages, summaries, low stock."""
    weight = 2

    def timed_get(self, name: str, url: str, params=None):
        start = time.time()
        response = self.client.get(url, params=params, name=name)
        metrics.record(name, (time.time() - start) * 1000, response.status_code)

    @task(4)
    def transactions_page(self):
        self.timed_get("transactions/list", "/api/transactions", {"page": random.randint(1, 5), "page_size": 50})

    @task(2)
    def summary(self):
        self.timed_get("reports/summary", "/api/reports/summary")

    @task(1)
    def low_stock(self):
        self.timed_get("reports/low_stock", "/api/reports/low-stock")

    @task(1)
    def health_check(self):
        self.timed_get("system/health", "/api/health")


# =============================================================================
# EVENT HANDLERS
# =============================================================================

def _verify_contested_items(host: str) -> bool:
    all_ok = True
    for item_id in CONTESTED_ITEMS:
        response = httpx.get(f"{host}/api/items/{item_id}/verify", timeout=10)
        if response.status_code != 200:
            print(f"  {item_id}: verify returned {response.status_code}")
            all_ok = False
            continue
        report = response.json()["verification"]
        state = "OK" if report["ok"] else "MISMATCH"
        print(f"  {item_id}: quantity={report['quantity']} transactions={report['transactions']} [{state}]")
        for problem in report["problems"]:
            print(f"    - {problem}")
        all_ok = all_ok and report["ok"]
    return all_ok


@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    """Print summary and verify ledger consistency when the run stops."""
    print("\n" + "=" * 88)
    print("LOAD TEST SUMMARY")
    print("=" * 88)

    summary = metrics.get_summary()

    print(f"\n{'Endpoint':<28} {'Count':>8} {'Errors':>8} {'409s':>8} {'Err%':>8} {'Avg(ms)':>10} {'P95(ms)':>10}")
    print("-" * 88)

    all_pass = True
    for name, stats in sorted(summary.items()):
        is_write = name.startswith("stock/")
        p95_threshold = 1000 if is_write else 500
        passed = stats["p95_ms"] < p95_threshold and stats["error_rate"] < 1
        all_pass = all_pass and passed

        print(
            f"{name:<28} {stats['count']:>8} {stats['errors']:>8} {stats['refused']:>8} "
            f"{stats['error_rate']:>7.2f}% {stats['avg_ms']:>9.1f} {stats['p95_ms']:>9.1f} "
            f"[{'PASS' if passed else 'FAIL'}]"
        )

    print("-" * 88)
    print("\nLedger verification:")
    if environment.host:
        all_pass = _verify_contested_items(environment.host) and all_pass

    print("=" * 88)
    print("\n[PASS] All endpoints within thresholds" if all_pass else "\n[FAIL] See above")
    print("=" * 88)
