import argparse
import json
import socket
import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Tuple
from urllib import error, request


def _post_compile(web_base: str, doc_length: Optional[int], timeout_sec: float) -> Tuple[str, float, Any]:
    path = "/compile"
    if doc_length:
        path += f"?doc_length={doc_length}"

    req = request.Request(
        url=f"{web_base.rstrip('/')}{path}",
        method="POST",
        headers={"Accept": "application/json"},
        data=b"",
    )
    started = time.time()
    try:
        with request.urlopen(req, timeout=timeout_sec) as response:
            body = response.read().decode("utf-8")
            parsed = json.loads(body) if body else {}
            return "success", time.time() - started, parsed
    except error.HTTPError as exc:
        body = exc.read().decode("utf-8")
        return f"http_{exc.code}", time.time() - started, body
    except (socket.timeout, TimeoutError):
        return "timeout", time.time() - started, None
    except error.URLError as exc:
        if isinstance(exc.reason, (socket.timeout, TimeoutError)):
            return "timeout", time.time() - started, None
        return "transport_error", time.time() - started, str(exc.reason)


def _percentile(values: List[float], q: float) -> float:
    if not values:
        return 0.0
    ordered = sorted(values)
    index = min(len(ordered) - 1, max(0, int(round(q * (len(ordered) - 1)))))
    return ordered[index]


def summarise(results: List[Tuple[str, float, Any]]) -> Dict[str, Any]:
    outcomes = Counter(outcome for outcome, _, _ in results)
    latencies = [elapsed for outcome, elapsed, _ in results if outcome == "success"]
    return {
        "total": len(results),
        "outcomes": dict(outcomes),
        "p50_sec": round(_percentile(latencies, 0.5), 3),
        "p90_sec": round(_percentile(latencies, 0.9), 3),
        "max_sec": round(max(latencies, default=0.0), 3),
    }


def main():
    parser = argparse.ArgumentParser(description="Drive synthetic compiles through the web tier.")
    parser.add_argument("--web-base", default="http://127.0.0.1:8080", help="Base URL of the web tier")
    parser.add_argument("--requests", type=int, default=20, help="Total compile requests to send")
    parser.add_argument("--interval-sec", type=float, default=5.0, help="Delay between request starts (seconds)")
    parser.add_argument("--concurrency", type=int, default=8, help="Maximum requests in flight")
    parser.add_argument("--doc-length", type=int, default=0, help="Fixed document length (0 = random)")
    parser.add_argument("--timeout-sec", type=float, default=20.0, help="Client timeout per request (seconds)")
    args = parser.parse_args()

    if args.requests <= 0:
        raise SystemExit("--requests must be > 0")
    if args.concurrency <= 0:
        raise SystemExit("--concurrency must be > 0")
    if args.interval_sec < 0:
        raise SystemExit("--interval-sec must be >= 0")

    print(f"[LOAD] Web tier     : {args.web_base}")
    print(f"[LOAD] Requests     : {args.requests}")
    print(f"[LOAD] Interval     : {args.interval_sec}s")
    print(f"[LOAD] Concurrency  : {args.concurrency}")
    print(f"[LOAD] Doc length   : {args.doc_length or 'random'}")
    print("")

    results: List[Tuple[str, float, Any]] = []
    with ThreadPoolExecutor(max_workers=args.concurrency) as pool:
        futures = []
        for i in range(args.requests):
            if i and args.interval_sec:
                time.sleep(args.interval_sec)
            futures.append(pool.submit(_post_compile, args.web_base, args.doc_length or None, args.timeout_sec))

        for i, future in enumerate(futures, start=1):
            outcome, elapsed, body = future.result()
            results.append((outcome, elapsed, body))
            print(f"[LOAD][{i:>4}] {outcome:<16} {elapsed:>7.2f}s {body if body is not None else ''}")

    summary = summarise(results)
    print("")
    print("[LOAD] Summary")
    print(f"[LOAD] Outcomes     : {summary['outcomes']}")
    print(f"[LOAD] Latency p50  : {summary['p50_sec']}s")
    print(f"[LOAD] Latency p90  : {summary['p90_sec']}s")
    print(f"[LOAD] Latency max  : {summary['max_sec']}s")


if __name__ == "__main__":
    main()
