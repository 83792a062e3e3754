# tests/property/test_template_properties.py
"""Property tests for template validation and graph construction."""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from cytogate.contracts.errors import TemplateValidationError
from cytogate.contracts.types import PATH_DELIMITER, ROOT
from cytogate.core.dag.graph import GatingTemplate
from cytogate.core.template.rows import validate_row, validate_rows
from cytogate.testing import raw_row
from tests.property.settings import DETERMINISM_SETTINGS, QUICK_SETTINGS, STANDARD_SETTINGS

alias_text = st.text(alphabet=st.characters(categories=["L", "N"], include_characters="_+-"), min_size=1, max_size=8)


@st.composite
def templates(draw: st.DrawFn) -> list[dict[str, str]]:
    """Tree-shaped templates, some rows combining earlier populations with boolGate."""
    size = draw(st.integers(min_value=1, max_value=10))
    rows: list[dict[str, str]] = []
    for index in range(size):
        alias = f"p{index}"
        parent = draw(st.sampled_from(["root", *[row["alias"] for row in rows]]))
        earlier = [row["alias"] for row in rows]
        if earlier and draw(st.booleans()):
            refs = draw(st.lists(st.sampled_from(earlier), min_size=1, max_size=3))
            operators = draw(st.lists(st.sampled_from(["&", "|", "&!"]), min_size=len(refs) - 1, max_size=len(refs) - 1))
            expression = refs[0] + "".join(op + ref for op, ref in zip(operators, refs[1:], strict=True))
            rows.append(raw_row(alias, parent=parent, gating_method="boolGate", gating_args=expression))
        else:
            rows.append(raw_row(alias, parent=parent, dims="CD3"))
    return rows


def _build(rows: list[dict[str, str]]) -> GatingTemplate:
    return GatingTemplate.from_rows(validate_rows(rows))


class TestBuildProperties:
    @given(rows=templates())
    @DETERMINISM_SETTINGS
    def test_build_is_deterministic(self, rows: list[dict[str, str]]) -> None:
        first = _build(rows)
        second = _build(rows)

        assert first == second
        assert first.topological_order() == second.topological_order()

    @given(rows=templates())
    @STANDARD_SETTINGS
    def test_order_puts_parents_and_references_first(self, rows: list[dict[str, str]]) -> None:
        template = _build(rows)
        order = template.topological_order()
        position = {path: index for index, path in enumerate(order)}

        assert order[0] == ROOT
        assert len(order) == template.node_count
        for path in order[1:]:
            assert position[template.get_parent(path)] < position[path]
            for ref in template.get_references(path):
                assert position[ref] < position[path]

    @given(rows=templates())
    @STANDARD_SETTINGS
    def test_every_population_has_one_data_parent(self, rows: list[dict[str, str]]) -> None:
        template = _build(rows)

        assert template.node_count == len(rows) + 1
        assert len(template.get_edges(include_references=False)) == len(rows)

    @given(rows=templates())
    @STANDARD_SETTINGS
    def test_paths_extend_parent_paths(self, rows: list[dict[str, str]]) -> None:
        template = _build(rows)

        for node in template.get_nodes()[1:]:
            parent = template.get_parent(node.path)
            expected_prefix = "" if parent == ROOT else parent
            assert node.path == f"{expected_prefix}{PATH_DELIMITER}{node.alias}"


class TestAliasProperties:
    @given(prefix=alias_text, suffix=alias_text)
    @QUICK_SETTINGS
    def test_delimiter_in_alias_always_rejected(self, prefix: str, suffix: str) -> None:
        with pytest.raises(TemplateValidationError):
            validate_row(raw_row(f"{prefix}{PATH_DELIMITER}{suffix}"), line=1)

    @given(alias=alias_text)
    @QUICK_SETTINGS
    def test_delimiter_free_alias_becomes_root_child(self, alias: str) -> None:
        template = _build([raw_row(alias)])

        assert f"{PATH_DELIMITER}{alias}" in template
