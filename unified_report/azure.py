"""
Azure Load Testing artifacts already downloaded next to the JMeter results.

Nothing here talks to Azure: server metrics are read from
``azure-server-metrics.json`` (an Azure Monitor ``value`` payload, or a
previously aggregated document) and the test run id from the extracted
dashboard.
"""

import json
import logging
import os
import re
import zipfile
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from .config import AzureSettings, ReportConfig
from .jmeter import candidate_dirs

logger = logging.getLogger(__name__)

SERVER_METRICS_FILE = "azure-server-metrics.json"
PORTAL_BASE = "https://portal.azure.com/#view/Microsoft_Azure_CloudNativeTesting"

# Metrics summed over the interval; everything else is averaged
TOTAL_METRICS = ("requests", "http5xx", "connection_failed", "deadlock")

_TEST_RUN_NAME_RE = re.compile(r'"testRunName":\s*"([^"]+)"')


def _empty_aggregate() -> Dict[str, Any]:
    return {
        "appServices": {},
        "appServicePlan": {
            "cpuPercentage": {"avg": 0, "max": 0, "min": 0},
            "memoryPercentage": {"avg": 0, "max": 0, "min": 0},
        },
        "database": {
            "cpuPercent": {"avg": 0, "max": 0, "min": 0, "sum": 0},
            "connectionsFailed": {"total": 0},
            "deadlocks": {"total": 0},
        },
        "storage": {
            "availability": {"avg": 0},
            "successE2ELatency": {"avg": 0},
            "successServerLatency": {"avg": 0},
        },
        "hasData": False,
    }


def _seconds_to_ms(value: float) -> float:
    return value * 1000 if value < 1 else value


def aggregate_metrics(payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Summarize an Azure Monitor metrics response per resource."""
    aggregated = _empty_aggregate()
    if not payload or not payload.get("value"):
        return aggregated

    for metric in payload["value"]:
        name = (metric.get("name") or {}).get("value") or ""
        resource_id = metric.get("resourceId") or metric.get("id") or ""
        timeseries = metric.get("timeseries") or []
        if not timeseries:
            continue
        points = timeseries[0].get("data") or []
        if not points:
            continue

        aggregated["hasData"] = True
        resource_name = resource_id.rstrip("/").split("/")[-1] or "unknown"
        metric_key = name.lower()

        source = "total" if metric_key in TOTAL_METRICS else "average"
        values = [float(p.get(source) or 0) for p in points]

        avg = sum(values) / len(values)
        high = max(values)
        low = min(values)
        total = sum(values)

        resource_path = resource_id.lower()
        if "/microsoft.web/sites/" in resource_path:
            service = aggregated["appServices"].setdefault(resource_name, {
                "name": resource_name,
                "httpResponseTime": {"avg": 0, "max": 0, "min": 0},
                "requests": {"total": 0},
                "http5xx": {"total": 0},
            })
            if metric_key == "httpresponsetime":
                service["httpResponseTime"] = {
                    "avg": round(_seconds_to_ms(avg), 2),
                    "max": round(_seconds_to_ms(high), 2),
                    "min": round(_seconds_to_ms(low), 2),
                }
            elif metric_key == "requests":
                service["requests"] = {"total": round(total)}
            elif metric_key == "http5xx":
                service["http5xx"] = {"total": round(total)}
        elif "/microsoft.web/serverfarms/" in resource_path:
            summary = {"avg": round(avg, 2), "max": round(high, 2), "min": round(low, 2)}
            if metric_key == "cpupercentage":
                aggregated["appServicePlan"]["cpuPercentage"] = summary
            elif metric_key == "memorypercentage":
                aggregated["appServicePlan"]["memoryPercentage"] = summary
        else:
            database = aggregated["database"]
            storage = aggregated["storage"]
            if metric_key == "cpu_percent":
                database["cpuPercent"] = {
                    "avg": round(avg, 2), "max": round(high, 2), "min": round(low, 2), "sum": round(total, 2),
                }
            elif metric_key == "connection_failed":
                database["connectionsFailed"] = {"total": round(total)}
            elif metric_key == "deadlock":
                database["deadlocks"] = {"total": round(total)}
            elif metric_key == "availability":
                storage["availability"] = {"avg": round(avg, 2)}
            elif metric_key == "successe2elatency":
                storage["successE2ELatency"] = {"avg": round(avg, 2)}
            elif metric_key == "successserverlatency":
                storage["successServerLatency"] = {"avg": round(avg, 2)}

    return aggregated


def build_portal_url(azure: AzureSettings, test_run_id: Optional[str] = None) -> Optional[str]:
    """Azure portal link to the load test, or to one of its runs."""
    if not (azure.subscription_id and azure.resource_group and azure.load_test_resource):
        return None
    resource = (
        f"%2Fsubscriptions%2F{quote(azure.subscription_id, safe='')}"
        f"%2Fresourcegroups%2F{quote(azure.resource_group, safe='')}"
        f"%2Fproviders%2Fmicrosoft.loadtestservice%2Floadtests%2F{quote(azure.load_test_resource, safe='')}"
    )
    if test_run_id:
        return f"{PORTAL_BASE}/TestRunReport.ReactView/resourceId/{resource}/testRunId/{test_run_id}"
    return f"{PORTAL_BASE}/NewTestRun.ReactView/resourceId/{resource}"


def _has_azure_data(directory: str) -> bool:
    markers = (SERVER_METRICS_FILE, "dashboard", "results.zip", "report.zip")
    return os.path.isdir(directory) and any(os.path.exists(os.path.join(directory, m)) for m in markers)


def locate_azure_dir(azure_dir: str, config: ReportConfig, artifacts_dir: str) -> str:
    dirs = candidate_dirs(artifacts_dir, config.paths.azure_data_path, config.paths.azure_data_alternatives)
    if azure_dir not in dirs:
        dirs.append(azure_dir)
    for directory in dirs:
        if _has_azure_data(directory):
            logger.info("Found Azure data in: %s", directory)
            return directory
    return azure_dir


def extract_archives(directory: str) -> None:
    """Unpack ``results.zip`` in place and ``report.zip`` into ``dashboard/``."""
    targets = (("results.zip", directory), ("report.zip", os.path.join(directory, "dashboard")))
    for archive, destination in targets:
        path = os.path.join(directory, archive)
        if not os.path.isfile(path):
            continue
        try:
            os.makedirs(destination, exist_ok=True)
            with zipfile.ZipFile(path) as zf:
                zf.extractall(destination)
            logger.info("Extracted %s", archive)
        except (zipfile.BadZipFile, OSError) as e:
            logger.warning("Could not extract %s: %s", path, e)


def read_test_run_id(directory: str, files: List[str]) -> Optional[str]:
    """``testRunName`` from the dashboard data, else the content of a test-id file."""
    run_data = os.path.join(directory, "dashboard", "data", "testRunData.js")
    if os.path.isfile(run_data):
        try:
            with open(run_data, "r", encoding="utf-8") as f:
                match = _TEST_RUN_NAME_RE.search(f.read())
        except OSError as e:
            logger.warning("Could not read %s: %s", run_data, e)
        else:
            if match:
                return match.group(1)

    for name in files:
        lowered = name.lower()
        if "testid" in lowered or "testrunid" in lowered:
            try:
                with open(os.path.join(directory, name), "r", encoding="utf-8") as f:
                    return f.read().strip() or None
            except OSError as e:
                logger.warning("Could not read %s: %s", name, e)
    return None


def count_csv_requests(directory: str, files: List[str]) -> Optional[int]:
    csv_name = next((f for f in sorted(files) if f.lower().endswith(".csv")), None)
    if csv_name is None:
        return None
    with open(os.path.join(directory, csv_name), "r", encoding="utf-8", errors="ignore") as f:
        lines = [line for line in f if line.strip()]
    return max(0, len(lines) - 1)


def load_server_metrics(path: str) -> Optional[Dict[str, Any]]:
    """
    Read the saved server metrics document.

    A raw Azure Monitor payload (top-level ``value``) is aggregated on load;
    an already aggregated document is returned unchanged.
    """
    with open(path, "r", encoding="utf-8") as f:
        document = json.load(f)
    if not isinstance(document, dict):
        return None
    if "value" in document and "serverMetrics" not in document:
        return {"serverMetrics": aggregate_metrics(document)}
    return document


def get_azure_load_test_info(azure_dir: str, config: ReportConfig, artifacts_dir: str) -> Dict[str, Any]:
    directory = locate_azure_dir(azure_dir, config, artifacts_dir)

    has_results = False
    total_requests = 0
    test_run_id = None
    cpu_percent: Any = "N/A"
    memory_percent: Any = "N/A"
    server_metrics = None

    if os.path.isdir(directory):
        files = os.listdir(directory)
        has_results = any(f.lower().endswith((".csv", ".zip")) for f in files)

        extract_archives(directory)
        files = os.listdir(directory)
        test_run_id = read_test_run_id(directory, files)

        try:
            counted = count_csv_requests(directory, files)
        except OSError as e:
            logger.warning("Could not parse Azure CSV: %s", e)
            counted = None
        if counted is not None:
            total_requests = counted
            has_results = True

        metrics_path = os.path.join(directory, SERVER_METRICS_FILE)
        if os.path.isfile(metrics_path):
            try:
                server_metrics = load_server_metrics(metrics_path)
            except (OSError, ValueError) as e:
                logger.warning("Could not parse server metrics JSON: %s", e)
            else:
                logger.info("Server-side metrics loaded from JSON")

    if not test_run_id and config.azure.test_run_id:
        test_run_id = config.azure.test_run_id

    plan = ((server_metrics or {}).get("serverMetrics") or {}).get("appServicePlan") or {}
    cpu_percent = (plan.get("cpuPercentage") or {}).get("avg") or cpu_percent
    memory_percent = (plan.get("memoryPercentage") or {}).get("avg") or memory_percent

    has_dashboard = os.path.isfile(os.path.join(directory, "dashboard", "index.html"))

    logger.info("Azure Load Test results: %s", "Found" if has_results else "Not found")
    if test_run_id:
        logger.info("Test Run ID: %s", test_run_id)

    return {
        "portalUrl": build_portal_url(config.azure, test_run_id) or "N/A",
        "hasResults": has_results,
        "totalRequests": total_requests,
        "testRunId": test_run_id,
        "hasAzureDashboard": has_dashboard,
        "serverMetrics": server_metrics,
        "metrics": {
            "cpuPercent": cpu_percent,
            "memoryPercent": memory_percent,
        },
    }
