# src/cytogate/core/arguments.py
"""Argument parser for the gating_args and preprocessing_args template columns.

Argument text is a comma-separated list of `name=value` pairs written as a
call's argument list, e.g. ``gate_range=[1, 3], positive=False, k=2``. The text
is wrapped in a call and parsed with Python's ast module; values are
converted to plain Python objects without evaluating anything.

Reference-like methods (boolGate, refGate, ...) carry a dependency expression
such as ``cd4&!cd8`` instead. That text would not survive expression parsing,
so it is kept verbatim as a single unnamed Symbol (``split=False``).
"""

from __future__ import annotations

import ast
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from cytogate.contracts.errors import ArgumentParseError

_CALL_WRAPPER = "_"


class Symbol(str):
    """A bare name in argument text, kept unevaluated."""

    __slots__ = ()

    def __repr__(self) -> str:
        return f"Symbol({str.__repr__(self)})"


@dataclass(frozen=True, slots=True)
class Expression:
    """Argument value that is neither a literal, a name nor a call.

    Attributes:
        source: Source text of the expression (e.g. ``a + b``)
    """

    source: str


@dataclass(frozen=True, slots=True)
class CallExpression:
    """Nested call in argument text, e.g. ``c(1, 3)`` or ``range(0, 10)``."""

    func: str
    arguments: MethodArguments


@dataclass(frozen=True, slots=True)
class MethodArguments:
    """Ordered (name, value) pairs parsed from argument text.

    Unnamed (positional) arguments have the empty name. Name lookup returns
    the first pair with that name.
    """

    pairs: tuple[tuple[str, Any], ...] = ()

    def __len__(self) -> int:
        return len(self.pairs)

    def __iter__(self) -> Iterator[tuple[str, Any]]:
        return iter(self.pairs)

    def __contains__(self, name: object) -> bool:
        return any(key == name for key, _ in self.pairs)

    def __getitem__(self, name: str) -> Any:
        for key, value in self.pairs:
            if key == name:
                return value
        raise KeyError(name)

    def get(self, name: str, default: Any = None) -> Any:
        try:
            return self[name]
        except KeyError:
            return default

    def names(self) -> list[str]:
        return [key for key, _ in self.pairs]

    def named(self) -> dict[str, Any]:
        """Named arguments as a dict (keyword arguments of a method call)."""
        result: dict[str, Any] = {}
        for key, value in self.pairs:
            if key and key not in result:
                result[key] = value
        return result

    def unnamed(self) -> list[Any]:
        return [value for key, value in self.pairs if not key]

    def merged(self, overrides: Mapping[str, Any] | None) -> MethodArguments:
        """Return a copy with override values applied.

        Start from the stored pairs, then overwrite every name present in
        `overrides`; names absent from the stored pairs are appended in
        override order. All other pairs are left untouched.
        """
        if not overrides:
            return self
        pending = dict(overrides)
        pairs: list[tuple[str, Any]] = []
        for key, value in self.pairs:
            if key and key in pending:
                pairs.append((key, pending.pop(key)))
            else:
                pairs.append((key, value))
        pairs.extend(pending.items())
        return MethodArguments(tuple(pairs))


class _ValueConverter(ast.NodeVisitor):
    """Convert an argument value's AST into a plain Python object."""

    def __init__(self, source: str) -> None:
        self._source = source

    def convert(self, node: ast.expr) -> Any:
        return self.visit(node)

    def generic_visit(self, node: ast.AST) -> Any:
        segment = ast.get_source_segment(self._source, node)
        return Expression(segment if segment is not None else ast.unparse(node))

    def visit_Constant(self, node: ast.Constant) -> Any:
        return node.value

    def visit_Name(self, node: ast.Name) -> Any:
        return Symbol(node.id)

    def visit_UnaryOp(self, node: ast.UnaryOp) -> Any:
        if isinstance(node.op, (ast.USub, ast.UAdd)) and isinstance(node.operand, ast.Constant):
            value = node.operand.value
            if isinstance(value, (int, float, complex)) and not isinstance(value, bool):
                return -value if isinstance(node.op, ast.USub) else value
        return self.generic_visit(node)

    def visit_List(self, node: ast.List) -> Any:
        return [self.visit(item) for item in node.elts]

    def visit_Tuple(self, node: ast.Tuple) -> Any:
        return tuple(self.visit(item) for item in node.elts)

    def visit_Dict(self, node: ast.Dict) -> Any:
        if any(key is None for key in node.keys):
            return self.generic_visit(node)
        return {self.visit(key): self.visit(value) for key, value in zip(node.keys, node.values, strict=True) if key is not None}

    def visit_Call(self, node: ast.Call) -> Any:
        if not isinstance(node.func, (ast.Name, ast.Attribute)):
            return self.generic_visit(node)
        return CallExpression(func=ast.unparse(node.func), arguments=_convert_call_arguments(node, self))


def _convert_call_arguments(call: ast.Call, converter: _ValueConverter) -> MethodArguments:
    """Convert a call's positional and keyword arguments, in source order."""
    entries: list[tuple[int, int, str, Any]] = []
    for arg in call.args:
        if isinstance(arg, ast.Starred):
            raise ArgumentParseError("starred arguments are not supported", text=ast.unparse(arg))
        entries.append((arg.lineno, arg.col_offset, "", converter.convert(arg)))
    for keyword in call.keywords:
        if keyword.arg is None:
            raise ArgumentParseError("'**' arguments are not supported", text=ast.unparse(keyword.value))
        entries.append((keyword.lineno, keyword.col_offset, keyword.arg, converter.convert(keyword.value)))
    entries.sort(key=lambda entry: (entry[0], entry[1]))
    return MethodArguments(tuple((name, value) for _, _, name, value in entries))


def parse_arguments(text: str | None, split: bool = True) -> MethodArguments:
    """Parse template argument text.

    Args:
        text: Raw argument text from the template
        split: If True, parse as `name=value` pairs. If False, keep the whole
            text as one unnamed Symbol (dependency expressions).

    Returns:
        MethodArguments in source order

    Raises:
        ArgumentParseError: If the text is not a valid argument list, or if it
            is empty in non-split mode
    """
    txt = (text or "").strip()

    if not split:
        if not txt:
            raise ArgumentParseError("argument is empty!", text=txt)
        return MethodArguments((("", Symbol(txt)),))

    if not txt:
        return MethodArguments()

    source = f"{_CALL_WRAPPER}({txt})"
    try:
        tree = ast.parse(source, mode="eval")
    except SyntaxError as e:
        raise ArgumentParseError("invalid gating argument", text=txt, detail=e.msg) from e

    call = tree.body
    # The wrapper can be closed early by unbalanced text, e.g. "a=1)(b=2"
    if not isinstance(call, ast.Call) or not isinstance(call.func, ast.Name) or call.func.id != _CALL_WRAPPER:
        raise ArgumentParseError("invalid gating argument", text=txt, detail="unbalanced parentheses")

    return _convert_call_arguments(call, _ValueConverter(source))
