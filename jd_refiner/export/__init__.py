"""Document export formats."""

from .pdf import ExportError, PDFConfig, PDFExporter, export_pdf

__all__ = ["ExportError", "PDFConfig", "PDFExporter", "export_pdf"]
