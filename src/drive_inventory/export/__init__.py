"""
Report rendering.
"""

from drive_inventory.export.excel import export_report, generate_report_filename

__all__ = [
    "export_report",
    "generate_report_filename",
]
