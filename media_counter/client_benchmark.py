import time, sys
from concurrent.futures import ThreadPoolExecutor

import requests
from requests.adapters import HTTPAdapter

KEY = "video"


def make_session(pool_size: int = 1):
    s = requests.Session()
    adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size, max_retries=0)
    s.mount("http://", adapter)
    s.headers.update({"Connection": "keep-alive"})
    return s


def worker(base: str, n: int):
    s = make_session()
    for _ in range(n):
        r = s.post(f"{base}/api/counter", json={"key": KEY, "delta": 1}, timeout=10)
        r.raise_for_status()


def get_count(base: str) -> int:
    return int(requests.get(f"{base}/api/counter", timeout=10).json()[KEY])


def run(base: str, clients: int, n: int) -> dict:
    before = get_count(base)
    t0 = time.perf_counter()

    with ThreadPoolExecutor(max_workers=clients) as ex:
        futures = [ex.submit(worker, base, n) for _ in range(clients)]
        for f in futures:
            f.result()

    dt = time.perf_counter() - t0
    after = get_count(base)

    total = clients * n
    expected = before + total
    return {
        "clients": clients,
        "calls_per_client": n,
        "total_calls": total,
        "time_sec": dt,
        "rps": total / dt if dt > 0 else float("inf"),
        "count_before": before,
        "count_after": after,
        "expected": expected,
        "ok": after == expected,
    }


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    base = argv[0] if len(argv) > 0 else "http://127.0.0.1:8080"
    clients = int(argv[1]) if len(argv) > 1 else 10
    n = int(argv[2]) if len(argv) > 2 else 1_000

    res = run(base, clients, n)

    print(f"clients={res['clients']} calls_per_client={res['calls_per_client']} total_calls={res['total_calls']}")
    print(f"time_sec={res['time_sec']:.6f} rps={res['rps']:.2f}")
    print(f"count_before={res['count_before']} count_after={res['count_after']} expected={res['expected']} ok={res['ok']}")
    return 0 if res["ok"] else 1


if __name__ == "__main__":
    sys.exit(main())
