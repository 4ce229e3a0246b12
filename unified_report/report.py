"""
Report orchestration: parse every source and write the JSON artifacts the
renderers consume.

Output layout under ``output_dir``::

    unified-report.json
    jmeter/summary.json
    jmeter/transactions/<transaction>.json
    playwright/summary.json     (automation enabled)
    azure/summary.json
"""

import json
import logging
import os
import re
from datetime import datetime
from typing import Any, Dict, Optional

from . import __version__
from .azure import get_azure_load_test_info
from .config import ReportConfig
from .excel import export_to_excel
from .jmeter import parse_jmeter_results
from .models import AggregatedResult
from .playwright import parse_playwright_results

logger = logging.getLogger(__name__)

UNIFIED_REPORT_FILE = "unified-report.json"


def sanitize_filename(name: str) -> str:
    return re.sub(r"[^a-z0-9]", "_", name, flags=re.IGNORECASE).lower()


def write_json(path: str, data: Any) -> None:
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, default=str)


def jmeter_summary(result: Optional[AggregatedResult]) -> Dict[str, Any]:
    """Summary document for the JMeter section; explicit empty state without data."""
    if result is None:
        return {"hasData": False}
    summary = result.to_dict()
    summary["hasData"] = True
    return summary


def write_transaction_details(result: AggregatedResult, jmeter_dir: str) -> int:
    transactions_dir = os.path.join(jmeter_dir, "transactions")
    for name, group in result.transactions.items():
        write_json(os.path.join(transactions_dir, f"{sanitize_filename(name)}.json"), group.to_dict())
    return len(result.transactions)


def generate_report(config: ReportConfig,
                    output_dir: Optional[str] = None,
                    artifacts_dir: Optional[str] = None,
                    jmeter_csv: Optional[str] = None,
                    excel_path: Optional[str] = None,
                    test_name: str = "JMeter Load Test") -> bool:
    """
    Build every report artifact. Returns False when generation failed.

    Missing sources are not failures: each section records an empty state.
    """
    artifacts_dir = artifacts_dir or os.path.join(os.getcwd(), ".artifacts")
    output_dir = output_dir or config.output_dir or os.path.join(artifacts_dir, "unified-report")

    jmeter_dir = os.path.join(output_dir, "jmeter")
    playwright_dir = os.path.join(output_dir, "playwright")
    azure_dir = os.path.join(output_dir, "azure")

    try:
        for directory in (output_dir, jmeter_dir, os.path.join(jmeter_dir, "transactions"), azure_dir):
            os.makedirs(directory, exist_ok=True)

        logger.info("Parsing JMeter results...")
        jmeter_data = parse_jmeter_results(artifacts_dir, config, jmeter_csv)

        playwright_data = None
        if config.features.automation:
            logger.info("Parsing Playwright results...")
            os.makedirs(playwright_dir, exist_ok=True)
            playwright_data = parse_playwright_results(artifacts_dir, output_dir, config.paths)
        else:
            logger.info("Skipping Playwright results (automation disabled)")

        logger.info("Processing Azure Load Test info...")
        azure_data = get_azure_load_test_info(azure_dir, config, artifacts_dir)

        write_json(os.path.join(jmeter_dir, "summary.json"), jmeter_summary(jmeter_data))
        if jmeter_data is not None:
            count = write_transaction_details(jmeter_data, jmeter_dir)
            logger.info("Wrote %d transaction detail files", count)
        if playwright_data is not None:
            write_json(os.path.join(playwright_dir, "summary.json"), playwright_data)
        write_json(os.path.join(azure_dir, "summary.json"), azure_data)

        write_json(os.path.join(output_dir, UNIFIED_REPORT_FILE), {
            "metadata": {
                "generated_at": datetime.now().isoformat(),
                "version": __version__,
                "test_name": test_name,
            },
            "jmeter": jmeter_summary(jmeter_data),
            "playwright": playwright_data,
            "azure": azure_data,
        })

        if excel_path:
            if jmeter_data is None:
                logger.warning("No JMeter data; skipping Excel export")
            else:
                export_to_excel(jmeter_data, excel_path, test_name)
    except (OSError, ImportError) as e:
        logger.exception("Error generating unified report: %s", e)
        return False

    logger.info("Unified report written to %s", output_dir)
    return True
