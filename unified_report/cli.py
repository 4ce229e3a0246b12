import argparse
import logging
import os
import sys
from typing import List, Optional

from . import __version__
from .config import ConfigError, load_config
from .excel import EXCEL_SUPPORT
from .report import UNIFIED_REPORT_FILE, generate_report


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="unified-report",
        description="Combine JMeter, Playwright and Azure Load Testing results into one report.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Defaults (config.yaml in the current directory if present)
  unified-report

  # Explicit config and output directory
  unified-report --config perf.yaml --output ./reports

  # Parse a specific CSV and also write an Excel workbook
  unified-report --jmeter-csv results.csv --excel-export report.xlsx --no-automation
        """
    )

    parser.add_argument("--config", "-c",
                        help="Path to configuration file (YAML or JSON)")
    parser.add_argument("--output", "-o",
                        help="Output directory (overrides outputDir from the config)")
    parser.add_argument("--artifacts-dir", default=".artifacts",
                        help="Directory holding the test artifacts (default: .artifacts)")
    parser.add_argument("--jmeter-csv",
                        help="JMeter CSV results file (skips directory discovery)")
    parser.add_argument("--test-name", default="JMeter Load Test",
                        help="Name of the test to display in the report")
    parser.add_argument("--excel-export",
                        help="Also export the JMeter results to an Excel file (provide path)")

    automation = parser.add_mutually_exclusive_group()
    automation.add_argument("--no-automation", dest="automation", action="store_false", default=None,
                            help="Disable Playwright/automation sections (overrides config)")
    automation.add_argument("--enable-automation", dest="automation", action="store_true", default=None,
                            help="Enable Playwright/automation sections (overrides config)")

    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging verbosity (default: INFO)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        config = load_config(args.config)
    except ConfigError as e:
        raise SystemExit(f"Error: {e}")

    if args.automation is not None:
        config.features.automation = args.automation

    if args.excel_export and not EXCEL_SUPPORT:
        raise SystemExit("Excel export requires openpyxl. Install with: pip install openpyxl")

    if args.jmeter_csv and not os.path.isfile(args.jmeter_csv):
        raise SystemExit(f"Error: JMeter CSV not found: {args.jmeter_csv}")

    output_dir = args.output or config.output_dir

    print(f"\n{'=' * 60}")
    print(f"Unified Performance Report v{__version__}")
    print(f"{'=' * 60}")
    if args.config:
        print(f"Configuration file: {args.config}")
    print(f"Artifacts:         {args.artifacts_dir}")
    if args.jmeter_csv:
        print(f"JMeter CSV:        {args.jmeter_csv}")
    print(f"Output directory:  {output_dir}")
    if args.excel_export:
        print(f"Excel output:      {args.excel_export}")
    print(f"Automation:        {'enabled' if config.features.automation else 'disabled'}")
    print(f"{'=' * 60}\n")

    success = generate_report(
        config,
        output_dir=output_dir,
        artifacts_dir=args.artifacts_dir,
        jmeter_csv=args.jmeter_csv,
        excel_path=args.excel_export,
        test_name=args.test_name,
    )

    if not success:
        print("\n✗ Unified report generation failed")
        return 1

    print(f"\n✓ Unified report generated: {os.path.join(output_dir, UNIFIED_REPORT_FILE)}")
    if args.excel_export:
        print(f"  - Excel report also available: {args.excel_export}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
