"""Report output formats."""

from .formatter import OUTPUT_FORMATS, ReportFormatter

__all__ = ['OUTPUT_FORMATS', 'ReportFormatter']
