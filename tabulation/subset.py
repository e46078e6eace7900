"""
Row filtering for summary requests.

Subset conditions are parsed into a small typed predicate tree rather
than evaluated as code. Column names are referenced unqualified, so
``"HHSIZE > 2 & CENSUS_R == '01'"`` reads the same as it would inside
a data.table or a DataFrame query.

Supported syntax:
    comparisons     ==  !=  <  <=  >  >=
    membership      X %in% c('01', '02')   X in [1, 2]
    logic           &  &&  and   |  ||  or   !  not   ( ... )
    literals        numbers, quoted strings, TRUE / FALSE

Comparisons against missing values are unknown (three-valued logic) and
a row is kept only when the whole condition is true.
"""

from __future__ import annotations

import operator
import re
from dataclasses import dataclass
from typing import Iterable, Optional, Union

import pandas as pd

from .variables import VariableCatalog


class ExpressionError(ValueError):
    """Raised when a subset condition is malformed or names unknown variables."""
    pass


COMPARISONS = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


# ---------------------------------------------------------------------------
# Predicate tree
# ---------------------------------------------------------------------------

class Predicate:
    """Base class for row predicates."""

    def __and__(self, other: "Predicate") -> "Predicate":
        return And((self, other))

    def __or__(self, other: "Predicate") -> "Predicate":
        return Or((self, other))

    def __invert__(self) -> "Predicate":
        return Not(self)

    def variables(self) -> set[str]:
        raise NotImplementedError

    def mask(self, frame: pd.DataFrame, catalog: VariableCatalog) -> pd.Series:
        """Three-valued (nullable boolean) evaluation over ``frame``."""
        raise NotImplementedError

    def evaluate(self, frame: pd.DataFrame, catalog: VariableCatalog) -> pd.Series:
        """Boolean Series of rows to keep; unknown results are dropped."""
        return self.mask(frame, catalog).fillna(False).astype(bool)


@dataclass(frozen=True)
class Var:
    """Reference to a column by name."""

    name: str

    def _compare(self, op: str, value) -> "Compare":
        right = value if isinstance(value, Var) else Literal(value)
        return Compare(op, self, right)

    def eq(self, value) -> "Compare":
        return self._compare("==", value)

    def ne(self, value) -> "Compare":
        return self._compare("!=", value)

    def __lt__(self, value) -> "Compare":
        return self._compare("<", value)

    def __le__(self, value) -> "Compare":
        return self._compare("<=", value)

    def __gt__(self, value) -> "Compare":
        return self._compare(">", value)

    def __ge__(self, value) -> "Compare":
        return self._compare(">=", value)

    def isin(self, values: Iterable) -> "In":
        return In(self, tuple(values))


def var(name: str) -> Var:
    """Shorthand for building predicates: ``var("HHSIZE") > 2``."""
    return Var(name)


@dataclass(frozen=True)
class Literal:
    value: object


Operand = Union[Var, Literal]


@dataclass(frozen=True)
class Constant(Predicate):
    value: bool

    def variables(self) -> set[str]:
        return set()

    def mask(self, frame, catalog):
        return pd.Series(self.value, index=frame.index, dtype="boolean")


TRUE = Constant(True)


def _coerce(literal, column: pd.Series):
    """Coerce a literal to the column's type, as stratum constraints do."""
    if isinstance(literal, bool) or literal is None:
        return literal
    if pd.api.types.is_numeric_dtype(column):
        try:
            return float(literal)
        except (TypeError, ValueError):
            raise ExpressionError(
                f"Cannot compare numeric variable '{column.name}' "
                f"with non-numeric value {literal!r}"
            ) from None
    if isinstance(literal, float) and literal.is_integer():
        return str(int(literal))
    return str(literal)


@dataclass(frozen=True)
class Compare(Predicate):
    op: str
    left: Operand
    right: Operand

    def __post_init__(self):
        if self.op not in COMPARISONS:
            raise ExpressionError(f"Unknown operator: {self.op}")

    def variables(self) -> set[str]:
        return {o.name for o in (self.left, self.right) if isinstance(o, Var)}

    def mask(self, frame, catalog):
        left, right = self.left, self.right
        if isinstance(left, Literal) and isinstance(right, Literal):
            result = COMPARISONS[self.op](left.value, right.value)
            return pd.Series(bool(result), index=frame.index, dtype="boolean")

        valid = pd.Series(True, index=frame.index)
        if isinstance(left, Var):
            lhs = frame[left.name]
            valid &= lhs.notna()
        if isinstance(right, Var):
            rhs = frame[right.name]
            valid &= rhs.notna()
        if isinstance(left, Literal):
            lhs = _coerce(left.value, rhs)
        if isinstance(right, Literal):
            rhs = _coerce(right.value, lhs)

        out = pd.Series(pd.NA, index=frame.index, dtype="boolean")
        if valid.any():
            lhs_valid = lhs[valid] if isinstance(lhs, pd.Series) else lhs
            rhs_valid = rhs[valid] if isinstance(rhs, pd.Series) else rhs
            try:
                compared = COMPARISONS[self.op](lhs_valid, rhs_valid)
            except TypeError as e:
                raise ExpressionError(
                    f"Cannot evaluate {self.describe()}: {e}"
                ) from None
            out[valid] = pd.Series(compared, index=frame.index[valid]).astype(bool)
        return out

    def describe(self) -> str:
        def show(o):
            return o.name if isinstance(o, Var) else repr(o.value)
        return f"{show(self.left)} {self.op} {show(self.right)}"


@dataclass(frozen=True)
class In(Predicate):
    target: Var
    values: tuple

    def variables(self) -> set[str]:
        return {self.target.name}

    def mask(self, frame, catalog):
        column = frame[self.target.name]
        values = [_coerce(v, column) for v in self.values]
        return column.isin(values).astype("boolean")


@dataclass(frozen=True)
class Missing(Predicate):
    """True where a variable is null or holds a reserved missing code."""

    target: Var

    def variables(self) -> set[str]:
        return {self.target.name}

    def mask(self, frame, catalog):
        descriptor = catalog.get(self.target.name)
        return descriptor.is_missing(frame[self.target.name]).astype("boolean")


@dataclass(frozen=True)
class Not(Predicate):
    operand: Predicate

    def variables(self) -> set[str]:
        return self.operand.variables()

    def mask(self, frame, catalog):
        return ~self.operand.mask(frame, catalog)


@dataclass(frozen=True)
class And(Predicate):
    operands: tuple

    def variables(self) -> set[str]:
        return set().union(*(p.variables() for p in self.operands))

    def mask(self, frame, catalog):
        result = pd.Series(True, index=frame.index, dtype="boolean")
        for p in self.operands:
            result = result & p.mask(frame, catalog)
        return result


@dataclass(frozen=True)
class Or(Predicate):
    operands: tuple

    def variables(self) -> set[str]:
        return set().union(*(p.variables() for p in self.operands))

    def mask(self, frame, catalog):
        result = pd.Series(False, index=frame.index, dtype="boolean")
        for p in self.operands:
            result = result | p.mask(frame, catalog)
        return result


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

_TOKEN_PATTERN = re.compile(r"""
    \s*(?:
        (?P<number>-?\d+\.?\d*(?:[eE][-+]?\d+)?)
      | (?P<string>'[^']*'|"[^"]*")
      | (?P<op>%in%|==|!=|<=|>=|&&|\|\||[<>&|!(),\[\]])
      | (?P<name>[A-Za-z_][A-Za-z0-9_.]*)
    )
""", re.VERBOSE)

_KEYWORDS = {
    "and": "&",
    "or": "|",
    "not": "!",
    "in": "%in%",
    "&&": "&",
    "||": "|",
}


@dataclass(frozen=True)
class _Token:
    kind: str
    value: object
    pos: int


def _tokenize(text: str) -> list[_Token]:
    tokens = []
    pos = 0
    text = text.rstrip()
    while pos < len(text):
        match = _TOKEN_PATTERN.match(text, pos)
        if match is None or match.end() == pos:
            raise ExpressionError(
                f"Invalid subset condition: unexpected character "
                f"{text[pos:].lstrip()[:1]!r} at position {pos}"
            )
        kind = match.lastgroup
        raw = match.group(kind)
        start = match.start(kind)
        if kind == "number":
            value = float(raw) if any(c in raw for c in ".eE") else int(raw)
            tokens.append(_Token("literal", value, start))
        elif kind == "string":
            tokens.append(_Token("literal", raw[1:-1], start))
        elif kind == "name" and raw in ("TRUE", "True"):
            tokens.append(_Token("literal", True, start))
        elif kind == "name" and raw in ("FALSE", "False"):
            tokens.append(_Token("literal", False, start))
        elif kind == "name" and raw in _KEYWORDS:
            tokens.append(_Token("op", _KEYWORDS[raw], start))
        elif kind == "op":
            tokens.append(_Token("op", _KEYWORDS.get(raw, raw), start))
        else:
            tokens.append(_Token(kind, raw, start))
        pos = match.end()
    return tokens


class _Parser:
    """Recursive-descent parser: or > and > not > comparison."""

    def __init__(self, text: str):
        self.text = text
        self.tokens = _tokenize(text)
        self.i = 0

    def peek(self) -> Optional[_Token]:
        return self.tokens[self.i] if self.i < len(self.tokens) else None

    def next(self) -> _Token:
        token = self.peek()
        if token is None:
            raise ExpressionError(
                f"Invalid subset condition: unexpected end of '{self.text}'"
            )
        self.i += 1
        return token

    def accept(self, value: str) -> bool:
        token = self.peek()
        if token is not None and token.kind == "op" and token.value == value:
            self.i += 1
            return True
        return False

    def expect(self, value: str) -> None:
        token = self.next()
        if token.kind != "op" or token.value != value:
            self.fail(token, f"expected '{value}'")

    def fail(self, token: _Token, message: str):
        raise ExpressionError(
            f"Invalid subset condition: {message} but found "
            f"{token.value!r} at position {token.pos}"
        )

    def parse(self) -> Predicate:
        if not self.tokens:
            raise ExpressionError("Invalid subset condition: empty expression")
        result = self.parse_or()
        token = self.peek()
        if token is not None:
            self.fail(token, "expected end of expression")
        return result

    def parse_or(self) -> Predicate:
        operands = [self.parse_and()]
        while self.accept("|"):
            operands.append(self.parse_and())
        return operands[0] if len(operands) == 1 else Or(tuple(operands))

    def parse_and(self) -> Predicate:
        operands = [self.parse_not()]
        while self.accept("&"):
            operands.append(self.parse_not())
        return operands[0] if len(operands) == 1 else And(tuple(operands))

    def parse_not(self) -> Predicate:
        if self.accept("!"):
            return Not(self.parse_not())
        return self.parse_comparison()

    def parse_comparison(self) -> Predicate:
        if self.accept("("):
            inner = self.parse_or()
            self.expect(")")
            return inner

        left = self.parse_operand()
        token = self.peek()

        if token is not None and token.kind == "op" and token.value == "!":
            # "X not in [...]"
            self.i += 1
            if not self.accept("%in%"):
                self.fail(self.peek() or token, "expected 'in' after 'not'")
            return Not(self.parse_membership(left))

        if token is not None and token.kind == "op" and token.value == "%in%":
            self.i += 1
            return self.parse_membership(left)

        if token is not None and token.kind == "op" and token.value in COMPARISONS:
            self.i += 1
            right = self.parse_operand()
            return Compare(token.value, left, right)

        if isinstance(left, Literal) and isinstance(left.value, bool):
            return Constant(left.value)

        if token is None:
            raise ExpressionError(
                f"Invalid subset condition: expected a comparison after "
                f"'{left.name if isinstance(left, Var) else left.value}'"
            )
        self.fail(token, "expected a comparison operator")

    def parse_operand(self) -> Operand:
        token = self.next()
        if token.kind == "literal":
            return Literal(token.value)
        if token.kind == "name":
            return Var(token.value)
        self.fail(token, "expected a variable or value")

    def parse_membership(self, left: Operand) -> Predicate:
        if not isinstance(left, Var):
            raise ExpressionError(
                f"Invalid subset condition: left side of 'in' must be a "
                f"variable, got {left.value!r}"
            )
        token = self.peek()
        if token is not None and token.kind == "name" and token.value == "c":
            self.i += 1
        if self.accept("["):
            closing = "]"
        else:
            self.expect("(")
            closing = ")"

        values = []
        if not self.accept(closing):
            while True:
                item = self.next()
                if item.kind != "literal":
                    self.fail(item, "expected a literal value in list")
                values.append(item.value)
                if self.accept(closing):
                    break
                self.expect(",")
                if self.accept(closing):
                    break
        return In(left, tuple(values))


def parse_subset(text: str) -> Predicate:
    """
    Parse a subset condition string into a predicate.

    Args:
        text: Condition such as ``"R_AGE >= 18 & WORKER %in% c('01')"``

    Returns:
        Predicate

    Raises:
        ExpressionError: If the condition is syntactically invalid
    """
    return _Parser(text).parse()


def compile_subset(
    subset: Union[str, Predicate, None],
    catalog: VariableCatalog,
    exclude_missing_for: Iterable[str] = (),
) -> Predicate:
    """
    Build the row predicate for a request.

    Args:
        subset: Condition string, predicate, or None to select all rows
        catalog: Variable catalog used to validate referenced names
        exclude_missing_for: Variables whose missing responses are excluded

    Returns:
        Predicate conjoining the subset with missing-value exclusions

    Raises:
        ExpressionError: If the condition is invalid or references
            variables that are not in the catalog
    """
    if subset is None:
        predicate = TRUE
    elif isinstance(subset, Predicate):
        predicate = subset
    elif isinstance(subset, str):
        predicate = parse_subset(subset) if subset.strip() else TRUE
    else:
        raise ExpressionError(
            f"Subset must be a string or predicate, got {type(subset).__name__}"
        )

    unknown = sorted(v for v in predicate.variables() if v not in catalog)
    if unknown:
        raise ExpressionError(
            f"Subset references unknown variables: {', '.join(unknown)}"
        )

    exclusions = [Not(Missing(Var(v))) for v in dict.fromkeys(exclude_missing_for)]
    if not exclusions:
        return predicate
    if predicate is TRUE:
        return exclusions[0] if len(exclusions) == 1 else And(tuple(exclusions))
    return And((predicate, *exclusions))
