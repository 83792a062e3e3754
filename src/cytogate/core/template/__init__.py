# src/cytogate/core/template/__init__.py
"""Gating template rows: validation and CSV loading."""

from cytogate.core.template.loader import load_template, read_template_csv
from cytogate.core.template.rows import REQUIRED_COLUMNS, TemplateRow, validate_row, validate_rows

__all__ = [
    "REQUIRED_COLUMNS",
    "TemplateRow",
    "load_template",
    "read_template_csv",
    "validate_row",
    "validate_rows",
]
