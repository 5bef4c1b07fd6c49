"""Restricted expression language for transform and filter nodes.

Expressions use Python syntax but are evaluated by walking the parsed tree,
never by ``eval``. Only the names passed in by the caller and a fixed set of
functions are visible. Field access (``item.price``) and indexing
(``item["price"]``, ``data[0]``) work on dicts and lists only.

    >>> evaluate("item.price * 2 > 10 and item.active", {"item": {"price": 6, "active": True}})
    True
"""

from __future__ import annotations

import ast
import operator
from typing import Any, Callable

from .errors import ExpressionError

MAX_EXPRESSION_LENGTH = 2000
MAX_SEQUENCE_LENGTH = 100_000


def _contains(container: Any, value: Any) -> bool:
    return value in container


def _lower(value: Any) -> str:
    return str(value).lower()


def _upper(value: Any) -> str:
    return str(value).upper()


def _strip(value: Any) -> str:
    return str(value).strip()


def _keys(value: dict[str, Any]) -> list[str]:
    return list(value.keys())


def _values(value: dict[str, Any]) -> list[Any]:
    return list(value.values())


FUNCTIONS: dict[str, Callable[..., Any]] = {
    "len": len,
    "lower": _lower,
    "upper": _upper,
    "strip": _strip,
    "str": str,
    "int": int,
    "float": float,
    "bool": bool,
    "round": round,
    "abs": abs,
    "min": min,
    "max": max,
    "sum": sum,
    "sorted": sorted,
    "contains": _contains,
    "keys": _keys,
    "values": _values,
}

_BINARY_OPS: dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
}

_UNARY_OPS: dict[type, Callable[[Any], Any]] = {
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
    ast.Not: operator.not_,
}

_COMPARE_OPS: dict[type, Callable[[Any, Any], bool]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda left, right: left in right,
    ast.NotIn: lambda left, right: left not in right,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
}


def _check_repeat(left: Any, right: Any) -> None:
    for seq, count in ((left, right), (right, left)):
        if isinstance(seq, (str, list, tuple)) and isinstance(count, int) and not isinstance(count, bool):
            if len(seq) * count > MAX_SEQUENCE_LENGTH:
                raise ExpressionError(f"Repeated sequence would exceed {MAX_SEQUENCE_LENGTH} items")


class Expression:
    """A parsed expression that can be evaluated repeatedly."""

    def __init__(self, source: str) -> None:
        if not isinstance(source, str) or not source.strip():
            raise ExpressionError("Expression must be a non-empty string")
        if len(source) > MAX_EXPRESSION_LENGTH:
            raise ExpressionError("Expression is too long")
        self.source = source.strip()
        try:
            self._tree = ast.parse(self.source, mode="eval")
        except SyntaxError as exc:
            raise ExpressionError(f"Invalid expression: {exc.msg}") from exc

    def evaluate(self, names: dict[str, Any]) -> Any:
        return _Evaluator(names).visit(self._tree.body)


class _Evaluator:
    def __init__(self, names: dict[str, Any]) -> None:
        self.names = names

    def visit(self, node: ast.AST) -> Any:
        method = getattr(self, f"visit_{type(node).__name__}", None)
        if method is None:
            raise ExpressionError(f"Unsupported syntax: {type(node).__name__}")
        return method(node)

    def visit_Constant(self, node: ast.Constant) -> Any:
        return node.value

    def visit_Name(self, node: ast.Name) -> Any:
        if node.id in self.names:
            return self.names[node.id]
        if node.id in ("true", "false", "null"):
            return {"true": True, "false": False, "null": None}[node.id]
        raise ExpressionError(f"Unknown name: {node.id}")

    def visit_List(self, node: ast.List) -> list[Any]:
        return [self.visit(item) for item in node.elts]

    def visit_Tuple(self, node: ast.Tuple) -> list[Any]:
        return [self.visit(item) for item in node.elts]

    def visit_Dict(self, node: ast.Dict) -> dict[Any, Any]:
        if any(key is None for key in node.keys):
            raise ExpressionError("Dictionary unpacking is not supported")
        try:
            return {self.visit(key): self.visit(value) for key, value in zip(node.keys, node.values)}
        except TypeError as exc:
            raise ExpressionError(f"Invalid dictionary key: {exc}") from exc

    def visit_Attribute(self, node: ast.Attribute) -> Any:
        if node.attr.startswith("_"):
            raise ExpressionError(f"Field names may not start with '_': {node.attr}")
        value = self.visit(node.value)
        if not isinstance(value, dict):
            raise ExpressionError(f"Cannot read field '{node.attr}' of {type(value).__name__}")
        if node.attr not in value:
            return None
        return value[node.attr]

    def visit_Subscript(self, node: ast.Subscript) -> Any:
        value = self.visit(node.value)
        key = self.visit(node.slice)
        if isinstance(value, dict):
            return value.get(key)
        if isinstance(value, (list, str)):
            if not isinstance(key, int) or isinstance(key, bool):
                raise ExpressionError("List index must be an integer")
            try:
                return value[key]
            except IndexError:
                return None
        raise ExpressionError(f"Cannot index {type(value).__name__}")

    def visit_BinOp(self, node: ast.BinOp) -> Any:
        op = _BINARY_OPS.get(type(node.op))
        if op is None:
            raise ExpressionError(f"Unsupported operator: {type(node.op).__name__}")
        left = self.visit(node.left)
        right = self.visit(node.right)
        if isinstance(node.op, ast.Mult):
            _check_repeat(left, right)
        try:
            return op(left, right)
        except (TypeError, ZeroDivisionError) as exc:
            raise ExpressionError(str(exc)) from exc

    def visit_UnaryOp(self, node: ast.UnaryOp) -> Any:
        op = _UNARY_OPS.get(type(node.op))
        if op is None:
            raise ExpressionError(f"Unsupported operator: {type(node.op).__name__}")
        try:
            return op(self.visit(node.operand))
        except TypeError as exc:
            raise ExpressionError(str(exc)) from exc

    def visit_BoolOp(self, node: ast.BoolOp) -> Any:
        if isinstance(node.op, ast.And):
            result: Any = True
            for value in node.values:
                result = self.visit(value)
                if not result:
                    return result
            return result
        result = False
        for value in node.values:
            result = self.visit(value)
            if result:
                return result
        return result

    def visit_Compare(self, node: ast.Compare) -> bool:
        left = self.visit(node.left)
        for op_node, comparator in zip(node.ops, node.comparators):
            op = _COMPARE_OPS[type(op_node)]
            right = self.visit(comparator)
            try:
                if not op(left, right):
                    return False
            except TypeError as exc:
                raise ExpressionError(str(exc)) from exc
            left = right
        return True

    def visit_IfExp(self, node: ast.IfExp) -> Any:
        if self.visit(node.test):
            return self.visit(node.body)
        return self.visit(node.orelse)

    def visit_Call(self, node: ast.Call) -> Any:
        if not isinstance(node.func, ast.Name):
            raise ExpressionError("Only named functions can be called")
        func = FUNCTIONS.get(node.func.id)
        if func is None:
            raise ExpressionError(f"Unknown function: {node.func.id}")
        if node.keywords:
            raise ExpressionError("Keyword arguments are not supported")
        args = [self.visit(arg) for arg in node.args]
        try:
            return func(*args)
        except (TypeError, ValueError) as exc:
            raise ExpressionError(f"{node.func.id}() failed: {exc}") from exc


def evaluate(source: str, names: dict[str, Any]) -> Any:
    return Expression(source).evaluate(names)
