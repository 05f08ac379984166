"""Parameterized SQL fragment builders.

Values never appear in generated text. Only column names taken from static
translation tables are interpolated; everything else travels through the
positional parameter list, whose Nth entry binds the Nth placeholder.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from jobboard.errors import InvalidInputError


@dataclass(frozen=True)
class SqlDialect:
    name: str
    placeholder_prefix: str
    contains_operator: str

    def placeholder(self, position: int) -> str:
        return f"{self.placeholder_prefix}{position}"


POSTGRES = SqlDialect(name="postgres", placeholder_prefix="$", contains_operator="ILIKE")
# sqlite's LIKE is already case-insensitive for ASCII text.
SQLITE = SqlDialect(name="sqlite", placeholder_prefix="?", contains_operator="LIKE")

# Bounds of a signed 64-bit SQL INTEGER; sqlite refuses to bind anything wider.
SQL_INTEGER_MIN = -(2**63)
SQL_INTEGER_MAX = 2**63 - 1


@dataclass(frozen=True)
class GeneratedClause:
    fragments: tuple[str, ...] = ()
    params: tuple[Any, ...] = ()
    separator: str = ", "

    @property
    def sql(self) -> str:
        return self.separator.join(self.fragments)

    @property
    def next_position(self) -> int:
        return len(self.params) + 1

    def __bool__(self) -> bool:
        return bool(self.fragments)


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def sql_for_partial_update(
    data: Mapping[str, Any],
    column_map: Mapping[str, str] | None = None,
    *,
    dialect: SqlDialect = POSTGRES,
) -> GeneratedClause:
    """Build the assignment list of an ``UPDATE ... SET`` statement.

    ``data`` holds only the fields being changed, keyed by their logical names.
    ``column_map`` translates logical names to storage columns; names missing
    from it are used verbatim.

        >>> clause = sql_for_partial_update({"firstName": "Aliya", "age": 32}, {"firstName": "first_name"})
        >>> clause.sql
        '"first_name"=$1, "age"=$2'
        >>> clause.params
        ('Aliya', 32)

    Raises ``InvalidInputError`` when ``data`` is empty.
    """
    if not data:
        raise InvalidInputError("No data")

    translations = column_map or {}
    fragments: list[str] = []
    params: list[Any] = []
    for position, (key, value) in enumerate(data.items(), start=1):
        column = translations.get(key, key)
        fragments.append(f"{quote_identifier(column)}={dialect.placeholder(position)}")
        params.append(value)
    return GeneratedClause(fragments=tuple(fragments), params=tuple(params), separator=", ")


@dataclass(frozen=True)
class JobFilters:
    title: str | None = None
    min_salary: int | float | None = None
    # Only the literal string "true" enables the equity filter.
    has_equity: Any = None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> JobFilters:
        title = raw.get("title")
        return cls(
            title=title if isinstance(title, str) else None,
            min_salary=_coerce_number(raw.get("minSalary")),
            has_equity=raw.get("hasEquity"),
        )

    @property
    def equity_required(self) -> bool:
        return self.has_equity == "true"


@dataclass(frozen=True)
class FilterColumns:
    text: str
    minimum: str
    flag: str


JOB_FILTER_COLUMNS = FilterColumns(text="title", minimum="salary", flag="equity")


@dataclass
class _PredicateList:
    dialect: SqlDialect
    fragments: list[str] = field(default_factory=list)
    params: list[Any] = field(default_factory=list)

    def add(self, template: str, value: Any) -> None:
        self.fragments.append(template.format(ph=self.dialect.placeholder(len(self.params) + 1)))
        self.params.append(value)

    def add_contains_words(self, column: str, text: str | None) -> None:
        if not text:
            return
        operator = self.dialect.contains_operator
        for word in text.split():
            self.add(f"{quote_identifier(column)} {operator} {{ph}}", f"%{word}%")

    def build(self) -> GeneratedClause:
        return GeneratedClause(
            fragments=tuple(self.fragments),
            params=tuple(self.params),
            separator=" AND ",
        )


def sql_for_job_filters(
    filters: JobFilters,
    *,
    columns: FilterColumns = JOB_FILTER_COLUMNS,
    dialect: SqlDialect = POSTGRES,
) -> GeneratedClause:
    """Build ``WHERE`` predicates for a job search.

    Every whitespace-separated word of ``title`` must match on its own, so
    "soft eng" matches "Software Engineer" but also "Engineering Software".
    An empty result means no filtering, not "match nothing".
    """
    predicates = _PredicateList(dialect=dialect)
    predicates.add_contains_words(columns.text, filters.title)
    if filters.min_salary is not None:
        predicates.add(f"{quote_identifier(columns.minimum)} >= {{ph}}", filters.min_salary)
    if filters.equity_required:
        flag = quote_identifier(columns.flag)
        predicates.add(f"{flag} IS NOT NULL AND {flag} > {{ph}}", 0)
    return predicates.build()


@dataclass(frozen=True)
class CompanyFilters:
    name_like: str | None = None
    min_employees: int | None = None
    max_employees: int | None = None


def sql_for_company_filters(
    filters: CompanyFilters,
    *,
    dialect: SqlDialect = POSTGRES,
) -> GeneratedClause:
    if (
        filters.min_employees is not None
        and filters.max_employees is not None
        and filters.min_employees > filters.max_employees
    ):
        raise InvalidInputError("minEmployees cannot be greater than maxEmployees")

    predicates = _PredicateList(dialect=dialect)
    if filters.name_like:
        predicates.add(f'"name" {dialect.contains_operator} {{ph}}', f"%{filters.name_like}%")
    if filters.min_employees is not None:
        predicates.add('"num_employees" >= {ph}', filters.min_employees)
    if filters.max_employees is not None:
        predicates.add('"num_employees" <= {ph}', filters.max_employees)
    return predicates.build()


def where_clause(clause: GeneratedClause) -> str:
    return f"WHERE {clause.sql}" if clause else ""


def _coerce_number(value: Any) -> int | float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if SQL_INTEGER_MIN <= value <= SQL_INTEGER_MAX else None
    if isinstance(value, float):
        return value if value == value else None
    if isinstance(value, str):
        text = value.strip()
        try:
            number = int(text)
        except ValueError:
            pass
        else:
            return _coerce_number(number)
        try:
            number = float(text)
        except ValueError:
            return None
        return number if number == number else None
    return None
