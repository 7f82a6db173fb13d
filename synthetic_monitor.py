import argparse
import os
import time
import uuid
from datetime import datetime, timezone

import pandas as pd
from playwright.sync_api import sync_playwright
from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    delete_from_gateway,
    push_to_gateway,
)

from journeys import JOURNEYS, clean_error_message

PUSHGATEWAY_URL = os.getenv("PUSHGATEWAY_URL", "http://localhost:9091")
PROM_JOB_JOURNEY = os.getenv("PROM_JOB_JOURNEY", "toolshop_journey_probe")

LATENCY_BUCKETS_MS = (
    100, 250, 500, 750,
    1000, 1500, 2000,
    3000, 5000, 7000,
    10000, 15000, 30000
)

STEP_COLUMNS = [
    "timestamp_utc", "env", "run_id", "journey", "row", "step",
    "duration_ms", "status", "slider_error", "screenshot", "error"
]


# ================= CLI =================

def parse_args(argv=None):
    p = argparse.ArgumentParser("Toolshop Synthetic Journey Probe")
    p.add_argument("--env", default="stage")
    p.add_argument("--journey-data", required=True, help="CSV input, one journey run per row")
    p.add_argument("--journeys", nargs="*", choices=sorted(JOURNEYS), help="Subset of journeys to run")
    p.add_argument("--iterations", type=int, default=1)
    p.add_argument("--delay", type=int, default=2, help="Seconds between journey runs")
    p.add_argument("--time-unit", choices=["ms", "s"], default="ms")
    p.add_argument("--headed", action="store_true")
    p.add_argument("--no-push", action="store_true", help="Skip the Prometheus Pushgateway")
    return p.parse_args(argv)


# ================= UTILS =================

def load_journey_data(path):
    df = pd.read_csv(path, dtype=str).fillna("")
    return df.to_dict(orient="records")


def safe(name):
    invalid = "<>:\"/\\|?*"
    table = str.maketrans({ch: "_" for ch in invalid})
    return str(name).translate(table).replace(" ", "_")


def capture_screenshot(page, screenshot_dir, journey, step, label=None):
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%f")
    parts = [safe(journey), safe(step)]
    if label:
        parts.append(safe(label))
    parts.append(timestamp)
    path = os.path.join(screenshot_dir, "_".join(parts) + ".png")
    try:
        page.screenshot(path=path, full_page=True)
    except Exception as exc:
        print(f"[WARN] Could not capture screenshot for {journey}/{step}: {clean_error_message(exc)}")
        return ""
    return path


class TimeFormatter:
    """Formats millisecond durations in the unit chosen on the command line."""

    def __init__(self, unit):
        self.unit = unit
        self.label = "ms" if unit == "ms" else "s"

    def convert(self, value):
        if value is None or pd.isna(value) or value < 0:
            return -1
        if self.unit == "ms":
            return int(round(value))
        return round(value / 1000.0, 3)


# ================= OBSERVER =================

class StepObserver:
    """Wall-clock step timer. Time spent between pause_timer and resume_timer is excluded."""

    def __init__(self, clock=time.time):
        self.clock = clock
        self.step_name = None
        self.start_time = None
        self._pause_stack = 0
        self._pause_start = None
        self._paused_total = 0

    def start_step(self, name):
        self.step_name = name
        self.start_time = self.clock()
        self._pause_stack = 0
        self._pause_start = None
        self._paused_total = 0

    def pause_timer(self):
        if self.start_time is None:
            return
        if self._pause_stack == 0:
            self._pause_start = self.clock()
        self._pause_stack += 1

    def resume_timer(self):
        if self.start_time is None or self._pause_stack == 0:
            return
        self._pause_stack -= 1
        if self._pause_stack == 0 and self._pause_start is not None:
            self._paused_total += self.clock() - self._pause_start
            self._pause_start = None

    def end_step(self, page=None):
        if self.start_time is None:
            return {"step": self.step_name or "unknown", "duration_ms": -1, "status": "FAILURE"}

        end_time = self.clock()
        if self._pause_stack > 0 and self._pause_start is not None:
            self._paused_total += end_time - self._pause_start

        duration = int((end_time - self.start_time - self._paused_total) * 1000)
        result = {"step": self.step_name, "duration_ms": max(duration, -1), "status": "SUCCESS"}

        self.start_time = None
        self.step_name = None
        self._pause_stack = 0
        self._pause_start = None
        self._paused_total = 0
        return result


# ================= PROMETHEUS =================

def build_journey_metrics(registry):
    return {
        "journey_duration": Histogram(
            "toolshop_journey_duration_ms",
            "Journey duration distribution",
            ["env", "journey", "run_id"],
            buckets=LATENCY_BUCKETS_MS,
            registry=registry
        ),
        "step_duration": Histogram(
            "toolshop_step_duration_ms",
            "Step duration distribution",
            ["env", "journey", "step", "run_id"],
            buckets=LATENCY_BUCKETS_MS,
            registry=registry
        ),
        "slider_error": Gauge(
            "toolshop_price_slider_error",
            "Distance between the requested and settled price range",
            ["env", "journey", "run_id"],
            registry=registry
        ),
        "success": Counter("toolshop_journey_success_total", "Journey success", ["env", "journey", "run_id"], registry=registry),
        "failure": Counter("toolshop_journey_failure_total", "Journey failure", ["env", "journey", "run_id"], registry=registry),
    }


def record_journey_metrics(metrics, env, journey_name, run_id, steps, total_duration_ms):
    status = "SUCCESS" if steps and all(s.get("status") == "SUCCESS" for s in steps) else "FAILURE"
    if total_duration_ms > 0:
        metrics["journey_duration"].labels(env, journey_name, run_id).observe(total_duration_ms)
    for step in steps:
        if step.get("duration_ms", -1) > 0:
            metrics["step_duration"].labels(env, journey_name, step["step"], run_id).observe(step["duration_ms"])
        if "slider_error" in step:
            metrics["slider_error"].labels(env, journey_name, run_id).set(step["slider_error"])
    metrics["success" if status == "SUCCESS" else "failure"].labels(env, journey_name, run_id).inc()
    return status


def push_metrics(registry, run_id, env):
    try:
        push_to_gateway(PUSHGATEWAY_URL, job=PROM_JOB_JOURNEY, registry=registry,
                        grouping_key={"run_id": run_id, "env": env})
    except Exception as exc:
        print(f"[WARN] Could not push metrics: {exc}")


def cleanup_pushgateway(run_id, env):
    try:
        delete_from_gateway(PUSHGATEWAY_URL, job=PROM_JOB_JOURNEY,
                            grouping_key={"run_id": run_id, "env": env})
        print(f"[INFO] Cleared stale metrics for job: {PROM_JOB_JOURNEY}")
    except Exception as exc:
        print(f"[WARN] Could not delete old metrics: {exc}")


# ================= REPORTS =================

def summarize_steps(step_df, time_formatter):
    ok = step_df[step_df["duration_ms"] > 0]
    label = time_formatter.label
    columns = ["journey", "step", f"avg_{label}", f"p90_{label}", f"max_{label}", f"min_{label}", "samples"]
    if ok.empty:
        return pd.DataFrame(columns=columns)

    grouped = ok.groupby(["journey", "step"], sort=False)["duration_ms"]
    summary = pd.DataFrame({
        f"avg_{label}": grouped.mean(),
        f"p90_{label}": grouped.quantile(0.9),
        f"max_{label}": grouped.max(),
        f"min_{label}": grouped.min(),
    })
    for col in summary.columns:
        summary[col] = summary[col].map(time_formatter.convert)
    summary["samples"] = grouped.size()
    return summary.reset_index()[columns]


def write_reports(base_dir, step_rows, journey_rows, time_formatter):
    step_df = pd.DataFrame(step_rows, columns=STEP_COLUMNS)
    summary_df = summarize_steps(step_df, time_formatter)

    label = time_formatter.label
    step_out = step_df.copy()
    step_out["duration_ms"] = step_out["duration_ms"].map(time_formatter.convert)
    step_out = step_out.rename(columns={"duration_ms": f"duration_{label}"})
    journey_df = pd.DataFrame(journey_rows, columns=[
        "timestamp_utc", "env", "run_id", "journey", "row", "status", "total_duration_ms"
    ])
    journey_df["total_duration_ms"] = journey_df["total_duration_ms"].map(time_formatter.convert)
    journey_df = journey_df.rename(columns={"total_duration_ms": f"total_duration_{label}"})

    step_out.to_csv(os.path.join(base_dir, "step_results.csv"), index=False)
    journey_df.to_csv(os.path.join(base_dir, "results.csv"), index=False)
    summary_df.to_csv(os.path.join(base_dir, "step_summary_report.csv"), index=False)
    return summary_df


# ================= RUN =================

def run_journeys(args, base_dir, run_id, time_formatter):
    rows = load_journey_data(args.journey_data)
    if not rows:
        raise ValueError("No journey rows found in the provided input.")
    selected = {name: JOURNEYS[name] for name in (args.journeys or JOURNEYS)}

    screenshot_dir = os.path.join(base_dir, "screenshots")
    os.makedirs(screenshot_dir, exist_ok=True)

    registry = CollectorRegistry()
    metrics = build_journey_metrics(registry)
    if not args.no_push:
        cleanup_pushgateway(run_id, args.env)

    step_rows = []
    journey_rows = []
    index = 0

    with sync_playwright() as playwright:
        browser = playwright.chromium.launch(headless=not args.headed)
        ctx = browser.new_context()

        for _ in range(max(1, args.iterations)):
            for journey_name, fn in selected.items():
                for row_no, row in enumerate(rows):
                    page = ctx.new_page()
                    observer = StepObserver()
                    journey_start = time.time()
                    try:
                        steps = fn(page, observer, row, index)
                    except Exception as exc:
                        steps = [{
                            "step": observer.step_name or "unknown",
                            "duration_ms": -1,
                            "status": "FAILURE",
                            "error": clean_error_message(exc),
                        }]
                    index += 1
                    total_duration = int((time.time() - journey_start) * 1000)

                    for step in steps:
                        shot = ""
                        if step.get("status") != "SUCCESS":
                            shot = capture_screenshot(page, screenshot_dir, journey_name, step["step"], label=f"row{row_no}")
                        step_rows.append([
                            datetime.now(timezone.utc).isoformat(), args.env, run_id,
                            journey_name, row_no, step["step"], step.get("duration_ms", -1),
                            step.get("status", "FAILURE"), step.get("slider_error", ""),
                            shot, clean_error_message(step.get("error", "")),
                        ])

                    status = record_journey_metrics(metrics, args.env, journey_name, run_id, steps, total_duration)
                    journey_rows.append([
                        datetime.now(timezone.utc).isoformat(), args.env, run_id,
                        journey_name, row_no, status, total_duration,
                    ])
                    print(f"[INFO] {journey_name} row {row_no}: {status} in {time_formatter.convert(total_duration)}{time_formatter.label}")

                    if not args.no_push:
                        push_metrics(registry, run_id, args.env)
                    page.close()
                    time.sleep(args.delay)

        browser.close()

    return write_reports(base_dir, step_rows, journey_rows, time_formatter)


def main(argv=None):
    args = parse_args(argv)

    run_id = f"{datetime.now(timezone.utc).strftime('%Y%m%dT%H%M%SZ')}_{uuid.uuid4().hex[:6]}"
    base_dir = os.path.join("runs", args.env, run_id)
    os.makedirs(base_dir, exist_ok=True)
    print(f"[INFO] Run {run_id} writing to {base_dir}")

    run_journeys(args, base_dir, run_id, TimeFormatter(args.time_unit))


if __name__ == "__main__":
    main()
