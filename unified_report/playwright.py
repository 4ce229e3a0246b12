import json
import logging
import os
import re
from typing import Any, Dict, List, Optional

from .config import PathSettings
from .jmeter import resolve_path

logger = logging.getLogger(__name__)

CONSOLIDATED_REPORT = "consolidated-report.html"

# Web-vital thresholds above which a page is flagged
POOR_LCP_MS = 4000
POOR_CLS = 0.25
POOR_FCP_MS = 3000


def display_name_from_filename(filename: str) -> str:
    """``external-referral-form---performance-2025-11-13.html`` -> ``External Referral Form``."""
    name = re.sub(r"\.html$", "", filename)
    name = re.sub(r"---performance-\d{4}-\d{2}-\d{2}$", "", name)
    name = re.sub(r"-\d{4}-\d{2}-\d{2}$", "", name)
    words = name.replace("-", " ").split(" ")
    return " ".join(w[:1].upper() + w[1:] for w in words)


def page_load_time(metrics: Dict[str, Any]) -> Optional[float]:
    navigation = metrics.get("navigationTiming") or {}
    if navigation.get("totalTime"):
        return navigation["totalTime"]
    vitals = metrics.get("webVitals") or {}
    if vitals.get("LCP"):
        return vitals["LCP"]
    return None


def classify_test_status(metrics: Dict[str, Any]) -> str:
    api_logs = metrics.get("apiLogs") or {}
    if (api_logs.get("totalFailures") or 0) > 0:
        return "failed"

    vitals = metrics.get("webVitals")
    if vitals:
        poor = (
            (vitals.get("LCP") or 0) > POOR_LCP_MS
            or (vitals.get("CLS") or 0) > POOR_CLS
            or (vitals.get("FCP") or 0) > POOR_FCP_MS
        )
        return "warning" if poor else "passed"
    return "passed"


def read_test_report(reports_dir: str, filename: str) -> Dict[str, Any]:
    json_path = os.path.join(reports_dir, re.sub(r"\.html$", ".json", filename))
    entry: Dict[str, Any] = {
        "filename": filename,
        "testName": display_name_from_filename(filename),
        "metrics": None,
        "hasJson": os.path.isfile(json_path),
        "pageLoadTime": None,
        "actions": [],
        "status": "unknown",
    }
    if not entry["hasJson"]:
        return entry

    try:
        with open(json_path, "r", encoding="utf-8") as f:
            metrics = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("Could not read Playwright metrics %s: %s", json_path, e)
        return entry
    if not isinstance(metrics, dict):
        return entry

    action_timings = metrics.get("actionTimings") or {}
    entry.update(
        metrics=metrics,
        pageLoadTime=page_load_time(metrics),
        actions=[
            {"name": a.get("name"), "duration": a.get("duration"), "timestamp": a.get("timestamp")}
            for a in action_timings.get("actions") or []
            if isinstance(a, dict)
        ],
        status=classify_test_status(metrics),
    )
    return entry


def _load_database_metrics(candidates: List[Optional[str]]) -> Optional[Any]:
    for path in candidates:
        if not path or not os.path.isfile(path):
            continue
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Could not read database metrics %s: %s", path, e)
            return None
    return None


def parse_playwright_results(artifacts_dir: str, output_dir: str, paths: PathSettings) -> Optional[Dict[str, Any]]:
    """Index the per-test Playwright reports and their JSON metrics."""
    ui_report_dir = resolve_path(paths.playwright_report_path, artifacts_dir)
    reports_dir = resolve_path(paths.playwright_consolidated_reports_path, artifacts_dir)
    performance_dir = resolve_path(paths.playwright_performance_reports_path, artifacts_dir)

    ui_report_index = os.path.join(ui_report_dir, "index.html") if ui_report_dir else None
    has_ui_report = bool(ui_report_index and os.path.isfile(ui_report_index))
    has_reports_dir = bool(reports_dir and os.path.isdir(reports_dir))

    if not has_reports_dir and not has_ui_report:
        logger.warning("Playwright reports directory not found")
        return None

    ui_report_link = None
    if has_ui_report:
        relative = os.path.relpath(ui_report_dir, os.path.join(output_dir, "playwright"))
        ui_report_link = os.path.join(relative, "index.html").replace("\\", "/")

    performance_report = None
    if performance_dir:
        performance_report = os.path.join(performance_dir, "playwright-performance", "performance-report.html")
    elif has_reports_dir:
        performance_report = os.path.join(reports_dir, "playwright-performance", "performance-report.html")

    data: Dict[str, Any] = {
        "hasConsolidatedReport": has_reports_dir and os.path.isfile(os.path.join(reports_dir, CONSOLIDATED_REPORT)),
        "hasPerformanceReport": bool(performance_report and os.path.isfile(performance_report)),
        "hasPlaywrightUIReport": has_ui_report,
        "playwrightUIReportPath": ui_report_link,
        "testCount": 0,
        "individualTests": [],
    }

    if has_reports_dir:
        html_reports = sorted(
            f for f in os.listdir(reports_dir)
            if f.endswith(".html") and f != CONSOLIDATED_REPORT and not f.startswith(".")
        )
        data["individualTests"] = [read_test_report(reports_dir, f) for f in html_reports]
        data["testCount"] = len(html_reports)

    database_metrics = _load_database_metrics([
        os.path.join(performance_dir, "playwright-performance", "database-metrics.json") if performance_dir else None,
        os.path.join(reports_dir, "playwright-performance", "database-metrics.json") if reports_dir else None,
    ])
    if database_metrics is not None:
        data["databaseMetrics"] = database_metrics

    logger.info("Found %d individual Playwright test reports", data["testCount"])
    if has_ui_report:
        logger.info("Found Playwright UI test report (index.html)")
    return data
