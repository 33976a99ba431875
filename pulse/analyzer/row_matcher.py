"""PULSE — Row Matcher.

Compiles a keyword rule into a structured ``KeywordPredicate`` and counts the
rows of a scope that satisfy it. Keywords are a disjunction: a row counts if
its column matches any token.

  *          every row (dominates the other tokens)
  $not_null  value is not null, empty string included
  $null      value is null (legacy alias: null)
  $empty     value equals ""
  other      exact match, case-insensitive for text columns,
             exact decimal text for status_code
"""

from dataclasses import dataclass
from typing import Any, Iterable, Protocol, Tuple

from pulse.core.column_registry import LOG_COLUMNS, LogColumn, SpecialKeyword
from pulse.models.stats_models import MetricScope
from pulse.core.logging import get_logger

logger = get_logger("analyzer.row_matcher")

_NULL_TOKENS = {SpecialKeyword.NULL.value, SpecialKeyword.LEGACY_NULL.value}


@dataclass(frozen=True)
class KeywordPredicate:
    """Column + match flags + literal values. Literals are data, never code."""

    column: LogColumn
    match_all: bool = False
    match_null: bool = False
    match_not_null: bool = False
    match_empty: bool = False
    literals: Tuple[str, ...] = ()

    @property
    def is_numeric(self) -> bool:
        return LOG_COLUMNS[self.column].is_numeric

    @property
    def folded_literals(self) -> Tuple[str, ...]:
        """Literals in the form compared against column values."""
        if self.is_numeric:
            return self.literals
        return tuple(literal.lower() for literal in self.literals)

    @property
    def is_empty(self) -> bool:
        """True when no row can ever match."""
        return not (
            self.match_all
            or self.match_null
            or self.match_not_null
            or self.match_empty
            or self.literals
        )

    def matches(self, value: Any) -> bool:
        """Evaluate the predicate against a single column value."""
        if self.match_all:
            return True
        if value is None:
            return self.match_null
        if self.match_not_null:
            return True
        text = str(value)
        if self.match_empty and text == "":
            return True
        if not self.literals:
            return False
        if self.is_numeric:
            return text in self.literals
        return text.lower() in self.folded_literals


class RowCounter(Protocol):
    """Persistence operations the matcher needs."""

    def count_rows(self, scope: MetricScope, predicate: KeywordPredicate) -> int: ...

    def count_total_rows(self, scope: MetricScope) -> int: ...


def build_predicate(column: LogColumn, keywords: Iterable[str]) -> KeywordPredicate:
    """Classify keyword tokens into a ``KeywordPredicate``."""
    match_null = match_not_null = match_empty = False
    literals: list[str] = []

    for keyword in keywords:
        token = keyword.strip()
        special = token.lower()
        if special == SpecialKeyword.WILDCARD.value:
            return KeywordPredicate(column=column, match_all=True)
        if special == SpecialKeyword.NOT_NULL.value:
            match_not_null = True
        elif special in _NULL_TOKENS:
            match_null = True
        elif special == SpecialKeyword.EMPTY.value:
            match_empty = True
        elif token and token not in literals:
            literals.append(token)

    return KeywordPredicate(
        column=column,
        match_null=match_null,
        match_not_null=match_not_null,
        match_empty=match_empty,
        literals=tuple(literals),
    )


def count_matching_rows(
    store: RowCounter,
    scope: MetricScope,
    column: LogColumn,
    keywords: Iterable[str],
) -> int:
    """Count rows in ``scope`` whose ``column`` matches any keyword."""
    keywords = list(keywords)
    if not keywords:
        return 0

    predicate = build_predicate(column, keywords)
    if predicate.match_all:
        return store.count_total_rows(scope)
    if predicate.is_empty:
        logger.debug(
            f"No usable keywords for {column.value}: {keywords!r}",
            extra={"client_id": scope.client_id},
        )
        return 0
    return store.count_rows(scope, predicate)
