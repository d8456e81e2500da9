"""
Evaluation harness -- runs eval_questions.jsonl through the interpreter and
the query engine, and generates analytics/reports/eval_report.md.

Checks:
  - Dimension correctness (planned dimensions match expected, order-independent)
  - Measure correctness   (planned output columns match expected, order-independent)
  - Chart correctness     (planned chart type matches expected)
  - Limit correctness     (top / bottom N detected, when expected)
  - Execution             (rows returned from the demo table, no error)
  - Latency               (plan + execute ms)
"""
from __future__ import annotations

import datetime
import json
import sys
import time
from pathlib import Path
from typing import Any

from datachat.copilot.interpreter import plan
from datachat.engine.parser import infer_schema, parse_csv
from datachat.engine.pipeline import run_query

EVAL_PATH = Path(__file__).resolve().parent / "eval_questions.jsonl"
REPORT_PATH = Path(__file__).resolve().parents[1] / "reports" / "eval_report.md"

DEMO_CSV = """\
date,region,category,units,sales
2024-01-05,North,Electronics,3,899.97
2024-01-09,South,Clothing,5,149.95
2024-02-11,North,Home,2,79.98
2024-02-14,East,Books,7,104.93
2024-03-02,West,Electronics,1,499.99
2024-03-19,South,Sports,4,239.96
2024-04-07,East,Clothing,6,209.94
2024-04-22,West,Home,3,134.97
2024-05-01,North,Books,9,161.91
2024-05-18,South,Electronics,2,1099.98
"""


def _load_questions() -> list[dict[str, Any]]:
    lines = EVAL_PATH.read_text().splitlines()
    return [json.loads(line) for line in lines if line.strip()]


def _run_one(q: dict[str, Any], table: list[dict[str, Any]], schema: dict[str, str]) -> dict[str, Any]:
    """Plan and execute a single question against the demo table."""
    question = q["question"]
    t0 = time.perf_counter()
    spec = plan(question, schema, mode="mock")
    result = run_query(table, spec)
    latency = int((time.perf_counter() - t0) * 1000)

    dims_ok = set(spec.dimensions) == set(q.get("expected_dimensions", []))
    measures_ok = {m.output_column for m in spec.measures} == set(q.get("expected_measures", []))
    chart_ok = spec.chart_type == q.get("expected_chart", "bar")
    limit_ok = spec.limit == q.get("expected_limit")
    executed = result.ok and len(result.data) > 0

    return {
        "question": question,
        "error": result.error,
        "latency_ms": latency,
        "dims_ok": dims_ok,
        "measures_ok": measures_ok,
        "chart_ok": chart_ok,
        "limit_ok": limit_ok,
        "executed": executed,
        "rows_returned": len(result.data),
        "success": dims_ok and measures_ok and chart_ok and limit_ok and executed,
        "spec": spec.model_dump(),
    }


def _rate(hits: int, total: int) -> float:
    return (hits / total * 100) if total else 0


def _generate_report(results: list[dict[str, Any]]) -> str:
    """Generate the Markdown eval report."""
    total = len(results)
    now = datetime.datetime.now().strftime("%Y-%m-%d %H:%M")

    counts = {
        key: sum(1 for r in results if r[key])
        for key in ("success", "dims_ok", "measures_ok", "chart_ok", "limit_ok", "executed")
    }

    latencies = sorted(r["latency_ms"] for r in results)
    avg_lat = sum(latencies) / len(latencies) if latencies else 0
    p50_lat = latencies[len(latencies) // 2] if latencies else 0
    p95_lat = latencies[min(int(len(latencies) * 0.95), len(latencies) - 1)] if latencies else 0
    max_lat = latencies[-1] if latencies else 0

    lines: list[str] = []
    lines.append("# Evaluation Report")
    lines.append("")
    lines.append(f"> Generated: {now}  |  Questions: **{total}**  |  Mode: `mock` (deterministic keyword interpreter)")
    lines.append("")
    lines.append("---")
    lines.append("")
    lines.append("## Summary")
    lines.append("")
    lines.append("| Metric | Value |")
    lines.append("|--------|-------|")
    labels = [
        ("success", "Overall success rate"),
        ("dims_ok", "Dimension correctness"),
        ("measures_ok", "Measure correctness"),
        ("chart_ok", "Chart type correctness"),
        ("limit_ok", "Limit correctness"),
        ("executed", "Execution (rows returned)"),
    ]
    for key, label in labels:
        lines.append(f"| {label} | **{_rate(counts[key], total):.0f}%** ({counts[key]}/{total}) |")
    lines.append("")
    lines.append("## Latency")
    lines.append("")
    lines.append("| Stat | ms |")
    lines.append("|------|-----|")
    lines.append(f"| Mean | {avg_lat:.0f} |")
    lines.append(f"| p50 | {p50_lat} |")
    lines.append(f"| p95 | {p95_lat} |")
    lines.append(f"| Max | {max_lat} |")
    lines.append("")
    lines.append("---")
    lines.append("")

    lines.append("## Per-Question Results")
    lines.append("")
    lines.append("| # | Question | Dims | Measures | Chart | Limit | Rows | Latency | Pass |")
    lines.append("|---|----------|------|----------|-------|-------|------|---------|------|")
    for i, r in enumerate(results, 1):
        flags = ["OK" if r[k] else "ERROR" for k in ("dims_ok", "measures_ok", "chart_ok", "limit_ok")]
        rows = str(r["rows_returned"]) if r["rows_returned"] else "--"
        p = "OK" if r["success"] else "ERROR"
        qtext = r["question"][:55] + ("..." if len(r["question"]) > 55 else "")
        lines.append(f"| {i} | {qtext} | {' | '.join(flags)} | {rows} | {r['latency_ms']} | {p} |")
    lines.append("")

    lines.append("## Failures")
    lines.append("")
    failures = [(i, r) for i, r in enumerate(results, 1) if not r["success"]]
    if not failures:
        lines.append("None -- all questions handled correctly.")
        lines.append("")
    for i, r in failures:
        lines.append(f"### #{i}: {r['question']}")
        lines.append("")
        if r.get("error"):
            lines.append(f"**Error:** `{r['error']}`")
        lines.append(f"**Planned:** `{json.dumps(r['spec'])}`")
        lines.append("")

    return "\n".join(lines)


def run():
    if sys.platform == "win32":
        sys.stdout.reconfigure(encoding="utf-8", errors="replace")  # type: ignore[attr-defined]

    table = parse_csv(DEMO_CSV)
    schema = infer_schema(table)
    questions = _load_questions()
    print(f"Loaded {len(questions)} eval questions.")
    print("Running evaluation...\n")

    results = []
    for i, q in enumerate(questions, 1):
        r = _run_one(q, table, schema)
        status = "PASS" if r["success"] else "FAIL"
        print(f"  [{i:2d}/{len(questions)}] {status}  {r['question'][:60]:<60}  {r['latency_ms']:>4d}ms  rows={r['rows_returned']}")
        results.append(r)

    REPORT_PATH.parent.mkdir(parents=True, exist_ok=True)
    REPORT_PATH.write_text(_generate_report(results), encoding="utf-8")
    print(f"\nReport written to {REPORT_PATH}")

    total = len(results)
    successes = sum(1 for r in results if r["success"])
    print(f"\n{'='*50}")
    print(f"  Success: {successes}/{total} ({_rate(successes, total):.0f}%)")
    print(f"{'='*50}")


if __name__ == "__main__":
    run()
