"""Report loading and tokenization utilities."""

from .reports import tokenize, report_label, list_reports, read_reports, extract_array

__all__ = ["tokenize", "report_label", "list_reports", "read_reports", "extract_array"]
