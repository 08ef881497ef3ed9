"""Workbook Extraction Module"""

from .workbook_extractor import ExtractedWorkbook, ReportMetadata, WorkbookTotals, extract_workbook

__all__ = ["ExtractedWorkbook", "ReportMetadata", "WorkbookTotals", "extract_workbook"]
