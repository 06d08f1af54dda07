"""
Excel rendering of inventory reports.

One workbook per report:
- Overview sheet with run info, totals and sharing counters
- One sheet per grouping (types, owners, folders, ...)
- One sheet per ranked list, plus Duplicates and Recommendations
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional, Sequence, Union

from openpyxl import Workbook
from openpyxl.styles import Font, Alignment, PatternFill, Border, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from drive_inventory.core.exceptions import ExportError
from drive_inventory.core.models import GroupCount, ReportFile, ReportModel
from drive_inventory.utils.formatting import format_timestamp

logger = logging.getLogger(__name__)


# Style definitions
HEADER_FILL = PatternFill(start_color="2B579A", end_color="2B579A", fill_type="solid")
URGENT_FILL = PatternFill(start_color="FFC7CE", end_color="FFC7CE", fill_type="solid")
WARNING_FILL = PatternFill(start_color="FFEB9C", end_color="FFEB9C", fill_type="solid")
INFO_FILL = PatternFill(start_color="C6EFCE", end_color="C6EFCE", fill_type="solid")
HEADER_FONT = Font(bold=True, color="FFFFFF")
TITLE_FONT = Font(bold=True, size=14)
SECTION_FONT = Font(bold=True, size=12)
THIN_BORDER = Border(
    left=Side(style='thin'),
    right=Side(style='thin'),
    top=Side(style='thin'),
    bottom=Side(style='thin')
)

PRIORITY_FILLS = {
    "URGENT": URGENT_FILL,
    "HIGH": URGENT_FILL,
    "MEDIUM": WARNING_FILL,
    "LOW": INFO_FILL,
    "INFO": INFO_FILL,
}

MAX_COLUMN_WIDTH = 60
MAX_SHEET_TITLE = 31

FILE_HEADERS = ["Name", "Size", "Path", "Owner", "Type", "Modified", "Age (days)",
                "Risk Score", "Cleanup Score", "Access", "Reasons", "URL"]

# Ranked list attribute -> sheet title
FILE_SHEETS = [
    ("large_files", "Large Files"),
    ("old_files", "Old Files"),
    ("high_risk_files", "High Risk"),
    ("cleanup_candidates", "Cleanup Candidates"),
    ("shared_files", "Shared Files"),
]


def export_report(report: ReportModel, output_path: Union[str, Path]) -> Path:
    """
    Render a report to an Excel workbook.

    Args:
        report: Finalized report (any run status)
        output_path: Output file path

    Returns:
        Path to created file

    Raises:
        ExportError: If the workbook cannot be built or written
    """
    output_path = Path(output_path)

    try:
        wb = Workbook()

        _create_overview_sheet(wb, report)

        for title, rows in report.groupings.items():
            _create_grouping_sheet(wb, title, rows)
        if report.largest_folders:
            _create_grouping_sheet(wb, "Largest Folders", report.largest_folders)

        for attribute, title in FILE_SHEETS:
            _create_file_sheet(wb, title, getattr(report, attribute))

        _create_duplicates_sheet(wb, report)
        _create_recommendations_sheet(wb, report)

        if "Sheet" in wb.sheetnames and len(wb.sheetnames) > 1:
            del wb["Sheet"]

        output_path.parent.mkdir(parents=True, exist_ok=True)
        wb.save(output_path)
        logger.info(f"Exported report to: {output_path}")
        return output_path

    except Exception as e:
        logger.error(f"Excel export failed: {e}")
        raise ExportError(f"Export failed: {e}") from e


def _write_header(ws: Worksheet, headers: Sequence[str], row: int = 1) -> None:
    for col, header in enumerate(headers, 1):
        cell = ws.cell(row=row, column=col)
        cell.value = header
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = Alignment(horizontal="center")
        cell.border = THIN_BORDER


def _write_rows(ws: Worksheet, rows: Sequence[Sequence[Any]], start_row: int = 2) -> None:
    for row_index, values in enumerate(rows, start_row):
        for col, value in enumerate(values, 1):
            cell = ws.cell(row=row_index, column=col)
            cell.value = value
            cell.border = THIN_BORDER


def _auto_width(ws: Worksheet) -> None:
    """Fit column widths to their longest value, capped."""
    for column_cells in ws.columns:
        length = max((len(str(cell.value)) for cell in column_cells if cell.value is not None), default=0)
        letter = get_column_letter(column_cells[0].column)
        ws.column_dimensions[letter].width = min(MAX_COLUMN_WIDTH, max(10, length + 2))


def _table_sheet(wb: Workbook, title: str, headers: Sequence[str], rows: Sequence[Sequence[Any]]) -> Worksheet:
    ws = wb.create_sheet(title[:MAX_SHEET_TITLE])
    _write_header(ws, headers)
    _write_rows(ws, rows)
    ws.freeze_panes = "A2"
    _auto_width(ws)
    return ws


def _create_overview_sheet(wb: Workbook, report: ReportModel) -> None:
    """Create the overview sheet with run info and totals."""
    ws = wb.create_sheet("Overview", 0)

    ws["A1"] = f"Drive Inventory Report: {report.inventory_name}"
    ws["A1"].font = TITLE_FONT
    ws.merge_cells("A1:D1")

    sections = [
        ("Run Information", [
            ("Status:", report.status.value),
            ("Started:", format_timestamp(report.started_at) or "N/A"),
            ("Generated:", format_timestamp(report.generated_at)),
            ("Batches:", report.batch_count),
        ]),
        ("Totals", [
            ("Total Files:", report.total_files),
            ("Total Size:", report.total_size),
            ("Average Size:", report.average_size),
            ("Native Documents:", report.native_files),
            ("Cleanup Potential:", report.cleanup_potential),
            ("Errors:", report.errors),
        ]),
        ("Projects", [
            ("Projects:", len(report.groupings.get("Projects", []))),
            ("README Files:", report.readme_files),
            ("Orphaned Files:", report.orphaned_files),
        ]),
        ("Sharing", [
            ("Shared Files:", report.shared_files_count),
            ("Public Files:", report.public_files),
            ("Domain Files:", report.domain_files),
            ("External Files:", report.external_files),
        ]),
    ]

    # Truncated duplicate detection goes right under the totals
    if report.dropped_duplicate_candidates:
        sections.insert(2, ("Limits", [
            ("Files skipped by duplicate detection:", report.dropped_duplicate_candidates),
        ]))
    if report.errors_by_kind:
        sections.append(("Errors by Kind", [
            (f"{kind.capitalize()}:", count) for kind, count in sorted(report.errors_by_kind.items())
        ]))

    row = 3
    for section_title, items in sections:
        ws[f"A{row}"] = section_title
        ws[f"A{row}"].font = SECTION_FONT
        row += 1
        for label, value in items:
            ws[f"A{row}"] = label
            ws[f"A{row}"].font = Font(bold=True)
            ws[f"B{row}"] = value
            row += 1
        row += 1

    ws.column_dimensions["A"].width = 40
    ws.column_dimensions["B"].width = 28


def _create_grouping_sheet(wb: Workbook, title: str, rows: List[GroupCount]) -> None:
    with_sizes = any(entry.size_bytes is not None for entry in rows)
    headers = ["Value", "Count", "Percentage"]
    if with_sizes:
        headers += ["Size", "Size (bytes)"]

    values = []
    for entry in rows:
        line = [entry.label, entry.count, entry.percentage / 100.0]
        if with_sizes:
            line += [entry.size or "", entry.size_bytes or 0]
        values.append(line)

    ws = _table_sheet(wb, title, headers, values)
    for row_index in range(2, len(values) + 2):
        ws.cell(row=row_index, column=3).number_format = "0.0%"


def _file_row(entry: ReportFile) -> List[Any]:
    return [
        entry.name,
        entry.size,
        entry.path,
        entry.owner,
        entry.type_label,
        entry.modified,
        entry.age_days if entry.age_days is not None else "",
        entry.risk_score,
        entry.cleanup_score,
        entry.access,
        entry.reasons,
        entry.url,
    ]


def _create_file_sheet(wb: Workbook, title: str, entries: List[ReportFile]) -> None:
    _table_sheet(wb, title, FILE_HEADERS, [_file_row(entry) for entry in entries])


def _create_duplicates_sheet(wb: Workbook, report: ReportModel) -> None:
    rows = [
        [group.name, group.size, group.count, group.wasted,
         "; ".join(group.locations), "; ".join(group.urls)]
        for group in report.duplicate_groups
    ]
    _table_sheet(wb, "Duplicates", ["Name", "Size", "Copies", "Wasted", "Locations", "URLs"], rows)


def _create_recommendations_sheet(wb: Workbook, report: ReportModel) -> None:
    rows = [
        [item.priority, item.title, item.description, item.action, item.potential_savings or ""]
        for item in report.recommendations
    ]
    ws = _table_sheet(
        wb, "Recommendations",
        ["Priority", "Title", "Description", "Action", "Potential Savings"],
        rows,
    )
    for row_index, item in enumerate(report.recommendations, 2):
        fill = PRIORITY_FILLS.get(item.priority)
        if fill is not None:
            ws.cell(row=row_index, column=1).fill = fill


def generate_report_filename(
    inventory_name: str,
    generated_at: Optional[datetime] = None,
    extension: str = ".xlsx"
) -> str:
    """Generate a descriptive report filename."""
    date_str = (generated_at or datetime.now()).strftime("%Y%m%d_%H%M%S")
    safe_name = "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in inventory_name)
    return f"inventory_{safe_name}_{date_str}{extension}"
