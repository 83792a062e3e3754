# src/cytogate/core/template/loader.py
"""Reading gating templates from CSV files."""

from __future__ import annotations

import csv
from pathlib import Path
from typing import TYPE_CHECKING

from cytogate.contracts.errors import TemplateValidationError
from cytogate.core.logging import get_logger
from cytogate.core.template.rows import REQUIRED_COLUMNS, validate_rows

if TYPE_CHECKING:
    from cytogate.core.config import TemplateSettings
    from cytogate.core.dag.graph import GatingTemplate

logger = get_logger(__name__)


def read_template_csv(path: Path) -> list[dict[str, str]]:
    """Read raw template rows from a CSV file with a header line.

    Raises:
        FileNotFoundError: If the file doesn't exist
        TemplateValidationError: If the header lacks a required column
    """
    with path.open(newline="", encoding="utf-8-sig") as f:
        reader = csv.DictReader(f)
        header = [name.strip() for name in reader.fieldnames or []]
        missing = [column for column in REQUIRED_COLUMNS if column not in header]
        if missing:
            raise TemplateValidationError(f"Template {path} is missing required column(s): {', '.join(missing)}")
        return [{(key or "").strip(): value for key, value in raw.items()} for raw in reader]


def load_template(path: Path, settings: TemplateSettings | None = None) -> GatingTemplate:
    """Read, validate and build a gating template from CSV.

    Raises:
        TemplateValidationError: If the template is malformed
        ArgumentParseError: If any argument text is malformed
    """
    from cytogate.core.config import TemplateSettings
    from cytogate.core.dag.graph import GatingTemplate

    if settings is None:
        settings = TemplateSettings()

    raw_rows = read_template_csv(path)
    rows = validate_rows(
        raw_rows,
        strict=settings.strict,
        wildcard=settings.wildcard,
        strip_extra_quotes=settings.strip_extra_quotes,
        expand_placeholders=settings.expand_placeholders,
    )
    template = GatingTemplate.from_rows(rows, name=settings.name)
    logger.info(
        "template loaded",
        template=template.name,
        source=str(path),
        populations=template.node_count - 1,
        edges=template.edge_count,
    )
    return template
