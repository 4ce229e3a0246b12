import logging
import os
from typing import Any, List

try:
    from openpyxl import Workbook
    from openpyxl.styles import Alignment, Border, Font, PatternFill, Side

    EXCEL_SUPPORT = True
except ImportError:
    EXCEL_SUPPORT = False

from .models import AggregatedResult

logger = logging.getLogger(__name__)

TRANSACTION_HEADERS = [
    "Transaction", "Executions", "Min (ms)", "Avg (ms)", "P90 (ms)",
    "P95 (ms)", "P99 (ms)", "Max (ms)", "Error Rate (%)", "Unique Requests",
]
ERROR_HEADERS = ["Sampler", "Count", "Error Type", "Message"]


def _write_table(ws, start_row: int, headers: List[str], rows: List[List[Any]]) -> int:
    header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
    header_font = Font(color="FFFFFF", bold=True)
    border = Border(
        left=Side(style='thin'),
        right=Side(style='thin'),
        top=Side(style='thin'),
        bottom=Side(style='thin')
    )

    for j, header in enumerate(headers, start=1):
        cell = ws.cell(row=start_row, column=j, value=header)
        cell.fill = header_fill
        cell.font = header_font
        cell.border = border
        cell.alignment = Alignment(horizontal='center', vertical='center')

    for i, row in enumerate(rows, start=start_row + 1):
        for j, value in enumerate(row, start=1):
            ws.cell(row=i, column=j, value=value).border = border
    return start_row + len(rows) + 1


def export_to_excel(result: AggregatedResult, output_path: str, test_name: str = "JMeter Load Test") -> str:
    """
    Write the JMeter result to an Excel workbook: summary, transactions, errors.
    """
    if not EXCEL_SUPPORT:
        raise ImportError("openpyxl is not installed. Install with: pip install openpyxl")

    wb = Workbook()
    if 'Sheet' in wb.sheetnames:
        wb.remove(wb['Sheet'])

    # 1. SUMMARY
    ws_summary = wb.create_sheet(title="Summary")
    ws_summary.sheet_view.showGridLines = False
    ws_summary.merge_cells('A1:D1')
    ws_summary['A1'] = f"PERFORMANCE TEST REPORT - {test_name}"
    ws_summary['A1'].font = Font(size=16, bold=True, color="366092")
    ws_summary['A1'].alignment = Alignment(horizontal='center')

    user_config = result.user_config
    test_info = [
        ["Environment:", user_config.get("environment", "Unknown")],
        ["Start Time:", f"{result.start_time} {result.timezone}".strip()],
        ["End Time:", f"{result.end_time} {result.timezone}".strip()],
        ["Duration:", result.test_duration_formatted],
        ["Transactions Executed:", result.total_samples],
        ["Total Requests:", result.total_requests],
        ["Pass Percentage:", f"{result.pass_percentage:.2f}%"],
        ["Total Errors:", result.total_error_count],
    ]
    for i, (label, value) in enumerate(test_info, start=3):
        ws_summary[f'A{i}'] = label
        ws_summary[f'B{i}'] = value
        ws_summary[f'A{i}'].font = Font(bold=True)

    user_rows = [[key, value] for key, value in user_config.items() if key != "environment"]
    _write_table(ws_summary, len(test_info) + 5, ["User Type", "Threads"], user_rows)

    for col in ['A', 'B', 'C', 'D']:
        ws_summary.column_dimensions[col].width = 26

    # 2. TRANSACTIONS
    ws_transactions = wb.create_sheet(title="Transactions")
    rows = []
    for group in sorted(result.transactions.values(), key=lambda g: g.total_samples, reverse=True):
        stats = group.stats
        rows.append([
            group.name, group.total_samples, stats.min, stats.avg, stats.p90,
            stats.p95, stats.p99, stats.max, group.error_rate, len(group.unique_child_requests),
        ])
    _write_table(ws_transactions, 1, TRANSACTION_HEADERS, rows)
    ws_transactions.column_dimensions['A'].width = 40
    ws_transactions.freeze_panes = 'A2'

    # 3. ERRORS
    ws_errors = wb.create_sheet(title="Errors")
    top_errors = result.error_analysis.get("topErrorsBySampler", [])
    _write_table(ws_errors, 1, ERROR_HEADERS, [
        [e["sampler"], e["count"], e["errorType"], e["message"]] for e in top_errors
    ])
    ws_errors.column_dimensions['A'].width = 40
    ws_errors.column_dimensions['D'].width = 80

    os.makedirs(os.path.dirname(os.path.abspath(output_path)), exist_ok=True)
    wb.save(output_path)
    logger.info("Excel report written to %s", output_path)
    return output_path
