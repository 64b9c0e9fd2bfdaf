import simulate_compile_load


def test_summarise_counts_outcomes_and_latency():
    results = [
        ("success", 1.0, {"output": "a" * 32}),
        ("success", 3.0, {"output": "b" * 32}),
        ("success", 2.0, {"output": "c" * 32}),
        ("http_500", 0.5, "boom"),
        ("timeout", 20.0, None),
    ]

    summary = simulate_compile_load.summarise(results)

    assert summary["total"] == 5
    assert summary["outcomes"] == {"success": 3, "http_500": 1, "timeout": 1}
    assert summary["p50_sec"] == 2.0
    assert summary["max_sec"] == 3.0


def test_summarise_handles_no_successes():
    summary = simulate_compile_load.summarise([("transport_error", 0.1, "refused")])

    assert summary["outcomes"] == {"transport_error": 1}
    assert summary["p50_sec"] == 0.0
    assert summary["max_sec"] == 0.0
