# tests/core/test_template_loader.py
"""Tests for reading gating templates from CSV."""

from pathlib import Path

import pytest

from cytogate.contracts.enums import MethodKind
from cytogate.contracts.errors import TemplateValidationError
from cytogate.core.config import TemplateSettings
from cytogate.core.template.loader import load_template, read_template_csv

HEADER = "alias,pop,parent,dims,gating_method,gating_args,collapseDataForGating,groupBy,preprocessing_method,preprocessing_args\n"

TEMPLATE = HEADER + (
    'nonDebris,+,root,FSC-A,mindensity,"gate_range=[50000, 100000]",,,,\n'
    'lymph,+,nonDebris,"FSC-A,SSC-A",flowClust,"K=2, quantile=0.95",,,prior_flowClust,K=2\n'
    "cd3,+,lymph,CD3,mindensity,,,,,\n"
    'cd4,+,cd3,CD4,tailgate,"tol=0.01",TRUE,PTID,,\n'
    'cd8,+,cd3,CD8,tailgate,"tol=0.01",TRUE,PTID,,\n'
    "DP,+,cd3,,boolGate,cd4&cd8,,,,\n"
)


@pytest.fixture
def template_file(tmp_path: Path) -> Path:
    path = tmp_path / "gt.csv"
    path.write_text(TEMPLATE)
    return path


class TestReadTemplateCsv:
    def test_rows_keyed_by_column(self, template_file: Path) -> None:
        rows = read_template_csv(template_file)

        assert len(rows) == 6
        assert rows[1]["dims"] == "FSC-A,SSC-A"
        assert rows[1]["gating_args"] == "K=2, quantile=0.95"

    def test_missing_column_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.csv"
        path.write_text("alias,pop,parent\ncd3,+,root\n")

        with pytest.raises(TemplateValidationError, match="gating_method"):
            read_template_csv(path)

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            read_template_csv(tmp_path / "absent.csv")


class TestLoadTemplate:
    def test_builds_template(self, template_file: Path) -> None:
        template = load_template(template_file)

        assert template.node_count == 7
        assert template.get_parent("/nonDebris/lymph/cd3/DP") == "/nonDebris/lymph/cd3"
        assert template.get_method("/nonDebris/lymph/cd3", "/nonDebris/lymph/cd3/DP").kind is MethodKind.BOOLEAN
        assert template.get_method("root", "/nonDebris").arguments["gate_range"] == [50000, 100000]

    def test_settings_name_the_template(self, template_file: Path) -> None:
        template = load_template(template_file, TemplateSettings(name="tcell"))

        assert template.name == "tcell"

    def test_invalid_template_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "gt.csv"
        path.write_text(HEADER + "cd3/x,+,root,CD3,mindensity,,,,,\n")

        with pytest.raises(TemplateValidationError, match="delimiter"):
            load_template(path)
