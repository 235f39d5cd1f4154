"""Export layer — CSV and Markdown output."""

from perfboard.export.csv_export import CSVExporter
from perfboard.export.markdown import MarkdownExporter

__all__ = ["CSVExporter", "MarkdownExporter"]
