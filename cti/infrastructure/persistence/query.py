"""Query builder: fluent, table-backed SELECTs that hydrate models.

Every call that names a column (where*, order_by, group_by, having, select,
join, aggregates, pluck) goes through _resolve_column(), the single hook
subclasses override to change how column names map to tables.
"""

from __future__ import annotations

import copy
import logging
import operator
from collections.abc import Callable, Iterable, Iterator
from typing import TYPE_CHECKING, Any, Protocol

from sqlalchemy import ColumnElement, Select, Table, and_, func, literal_column, or_, select

from cti.domain.exceptions import ModelNotFound

if TYPE_CHECKING:
    from cti.infrastructure.persistence.collection import ModelCollection
    from cti.infrastructure.persistence.model import Model

logger = logging.getLogger(__name__)

_UNSET: Any = object()

_OPERATORS: dict[str, Callable[[Any, Any], ColumnElement]] = {
    "=": operator.eq,
    "==": operator.eq,
    "!=": operator.ne,
    "<>": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "like": lambda column, value: column.like(value),
    "not like": lambda column, value: column.not_like(value),
}

_DIRECTIONS = frozenset({"asc", "desc"})

Column = str | ColumnElement


class Scope(Protocol):
    """A global constraint applied every time the query is compiled."""

    def clause(self, builder: QueryBuilder) -> ColumnElement | None: ...


def _operator(op: str) -> Callable[[Any, Any], ColumnElement]:
    try:
        return _OPERATORS[op.lower()]
    except KeyError:
        raise ValueError(f"Unsupported operator {op!r}; use one of {sorted(_OPERATORS)}") from None


class QueryBuilder:
    """Fluent query over a model's table.

    Builder methods mutate and return self. Global scopes contribute their
    clauses at compile time, so a builder can be reused after removing one.
    """

    def __init__(self, model_cls: type[Model]) -> None:
        self.model_cls = model_cls
        self.database = model_cls.get_connection()
        self.table: Table = model_cls.get_table_object()
        self._columns: list[ColumnElement] | None = None
        self._joins: list[tuple[Table, ColumnElement | None, bool]] = []
        self._wheres: list[tuple[str, ColumnElement]] = []
        self._orders: list[ColumnElement] = []
        self._groups: list[ColumnElement] = []
        self._havings: list[ColumnElement] = []
        self._limit: int | None = None
        self._offset: int | None = None
        self._scopes: dict[str, Scope] = {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.model_cls.__name__})"

    def _clone(self) -> QueryBuilder:
        clone = copy.copy(self)
        clone._joins = list(self._joins)
        clone._wheres = list(self._wheres)
        clone._orders = list(self._orders)
        clone._groups = list(self._groups)
        clone._havings = list(self._havings)
        clone._scopes = dict(self._scopes)
        clone._columns = list(self._columns) if self._columns is not None else None
        return clone

    # Column resolution

    def _table_named(self, name: str) -> Table | None:
        if name == self.table.name:
            return self.table
        for table, _, _ in self._joins:
            if table.name == name:
                return table
        return None

    def _resolve_column(self, column: Column) -> ColumnElement:
        """Map a column name ("col" or "table.col") to a column of the query's tables.

        Unqualified names are looked up on the base table, then on joined
        tables in join order. Unknown names pass through as literal SQL.
        """
        if not isinstance(column, str):
            return column
        table_name, _, name = column.rpartition(".")
        if table_name:
            table = self._table_named(table_name)
            if table is not None and name in table.c:
                return table.c[name]
            return literal_column(column)
        if name in self.table.c:
            return self.table.c[name]
        for table, _, _ in self._joins:
            if name in table.c:
                return table.c[name]
        return literal_column(name)

    # Scopes

    def with_global_scope(self, name: str, scope: Scope) -> QueryBuilder:
        self._scopes[name] = scope
        return self

    def without_global_scope(self, name: str) -> QueryBuilder:
        self._scopes.pop(name, None)
        return self

    def has_global_scope(self, name: str) -> bool:
        return name in self._scopes

    # Joins

    def has_join(self, table_name: str) -> bool:
        """Return True if table_name is already joined into this query."""
        return any(table.name == table_name for table, _, _ in self._joins)

    def _add_join(self, table: Table, onclause: ColumnElement, *, outer: bool = False) -> None:
        self._joins.append((table, onclause, outer))

    def join(
        self,
        table: str | Table,
        first: Column,
        op: str,
        second: Column,
        *,
        outer: bool = False,
    ) -> QueryBuilder:
        """Join table on first <op> second."""
        target = self.database.table(table) if isinstance(table, str) else table
        # the target must be visible to resolution before the ON clause is built
        self._joins.append((target, None, outer))
        index = len(self._joins) - 1
        onclause = _operator(op)(self._resolve_column(first), self._resolve_column(second))
        self._joins[index] = (target, onclause, outer)
        return self

    def left_join(
        self, table: str | Table, first: Column, op: str, second: Column
    ) -> QueryBuilder:
        return self.join(table, first, op, second, outer=True)

    # Wheres

    def _add_where(self, clause: ColumnElement, boolean: str) -> QueryBuilder:
        self._wheres.append((boolean, clause))
        return self

    def where(
        self,
        column: Column | dict[str, Any],
        op: Any = _UNSET,
        value: Any = _UNSET,
        *,
        boolean: str = "and",
    ) -> QueryBuilder:
        """Add a comparison. where("a", 1) means a = 1; where("a", ">", 1) uses the operator.

        A dict adds one equality per item.
        """
        if isinstance(column, dict):
            for key, item in column.items():
                self.where(key, "=", item, boolean=boolean)
            return self
        if value is _UNSET:
            op, value = "=", op
        resolved = self._resolve_column(column)
        if value is None and op in ("=", "=="):
            return self._add_where(resolved.is_(None), boolean)
        return self._add_where(_operator(op)(resolved, value), boolean)

    def or_where(
        self, column: Column | dict[str, Any], op: Any = _UNSET, value: Any = _UNSET
    ) -> QueryBuilder:
        return self.where(column, op, value, boolean="or")

    def where_in(
        self,
        column: Column,
        values: Iterable[Any],
        *,
        boolean: str = "and",
        negate: bool = False,
    ) -> QueryBuilder:
        resolved = self._resolve_column(column)
        values = list(values)
        clause = resolved.not_in(values) if negate else resolved.in_(values)
        return self._add_where(clause, boolean)

    def where_not_in(
        self, column: Column, values: Iterable[Any], *, boolean: str = "and"
    ) -> QueryBuilder:
        return self.where_in(column, values, boolean=boolean, negate=True)

    def where_null(self, column: Column, *, boolean: str = "and") -> QueryBuilder:
        return self._add_where(self._resolve_column(column).is_(None), boolean)

    def where_not_null(self, column: Column, *, boolean: str = "and") -> QueryBuilder:
        return self._add_where(self._resolve_column(column).is_not(None), boolean)

    def where_between(
        self,
        column: Column,
        bounds: tuple[Any, Any],
        *,
        boolean: str = "and",
        negate: bool = False,
    ) -> QueryBuilder:
        low, high = bounds
        clause = self._resolve_column(column).between(low, high)
        return self._add_where(~clause if negate else clause, boolean)

    def where_not_between(
        self, column: Column, bounds: tuple[Any, Any], *, boolean: str = "and"
    ) -> QueryBuilder:
        return self.where_between(column, bounds, boolean=boolean, negate=True)

    def where_column(
        self, first: Column, op: str, second: Column | None = None, *, boolean: str = "and"
    ) -> QueryBuilder:
        """Compare two columns. where_column("a", "b") means a = b."""
        if second is None:
            op, second = "=", op
        clause = _operator(op)(self._resolve_column(first), self._resolve_column(second))
        return self._add_where(clause, boolean)

    # Ordering, grouping, projection, paging

    def order_by(self, column: Column, direction: str = "asc") -> QueryBuilder:
        direction = direction.lower()
        if direction not in _DIRECTIONS:
            raise ValueError(f"Order direction must be 'asc' or 'desc', got {direction!r}")
        resolved = self._resolve_column(column)
        self._orders.append(resolved.desc() if direction == "desc" else resolved.asc())
        return self

    def order_by_desc(self, column: Column) -> QueryBuilder:
        return self.order_by(column, "desc")

    def group_by(self, *columns: Column) -> QueryBuilder:
        self._groups.extend(self._resolve_column(column) for column in columns)
        return self

    def having(self, column: Column, op: Any, value: Any = _UNSET) -> QueryBuilder:
        if value is _UNSET:
            op, value = "=", op
        self._havings.append(_operator(op)(self._resolve_column(column), value))
        return self

    def select(self, *columns: Column) -> QueryBuilder:
        """Replace the selected columns. "*" selects every base table column."""
        selected: list[ColumnElement] = []
        for column in columns:
            if column == "*":
                selected.extend(self.table.c)
            else:
                selected.append(self._resolve_column(column))
        self._columns = selected
        return self

    def add_select(self, *columns: Column) -> QueryBuilder:
        current = self._columns if self._columns is not None else list(self.table.c)
        self._columns = current + [self._resolve_column(column) for column in columns]
        return self

    def limit(self, count: int) -> QueryBuilder:
        self._limit = count
        return self

    def offset(self, count: int) -> QueryBuilder:
        self._offset = count
        return self

    take = limit
    skip = offset

    # Compilation

    def _where_clause(self) -> ColumnElement | None:
        combined: ColumnElement | None = None
        for boolean, clause in self._wheres:
            if combined is None:
                combined = clause
            elif boolean == "or":
                combined = or_(combined, clause)
            else:
                combined = and_(combined, clause)
        scoped = [
            clause
            for clause in (scope.clause(self) for scope in self._scopes.values())
            if clause is not None
        ]
        if not scoped:
            return combined
        return and_(*([combined] if combined is not None else []), *scoped)

    def _from_clause(self) -> Any:
        from_clause: Any = self.table
        for table, onclause, outer in self._joins:
            from_clause = from_clause.join(table, onclause, isouter=outer)
        return from_clause

    def to_statement(
        self, columns: list[ColumnElement] | None = None, *, aggregate: bool = False
    ) -> Select:
        """Compile the builder into a SQLAlchemy Select."""
        selected = columns or self._columns or [self.table]
        statement = select(*selected).select_from(self._from_clause())
        where = self._where_clause()
        if where is not None:
            statement = statement.where(where)
        if self._groups:
            statement = statement.group_by(*self._groups)
        if self._havings:
            statement = statement.having(and_(*self._havings))
        if not aggregate:
            if self._orders:
                statement = statement.order_by(*self._orders)
            if self._limit is not None:
                statement = statement.limit(self._limit)
            if self._offset is not None:
                statement = statement.offset(self._offset)
        return statement

    def to_sql(self) -> str:
        """Return the compiled SQL with bound values inlined (for debugging and tests)."""
        statement = self.to_statement()
        compiled = statement.compile(
            dialect=self.database.engine.dialect, compile_kwargs={"literal_binds": True}
        )
        return str(compiled)

    # Execution

    def _hydrate(self, row: Any) -> Model:
        return self.model_cls.new_from_row(row)

    def get(self) -> ModelCollection:
        """Run the query and return the model class's collection of hydrated models."""
        rows = self.database.select_rows(self.to_statement())
        logger.debug("%s query returned %d rows", self.model_cls.__name__, len(rows))
        return self.model_cls.new_collection([self._hydrate(row) for row in rows])

    def first(self) -> Model | None:
        row = self.database.select_one(self._clone().limit(1).to_statement())
        if row is None:
            return None
        model = self._hydrate(row)
        model._on_fetched_single()
        return model

    def find(self, key: Any) -> Model | None:
        """Return the model with primary key key, or None."""
        key_column = f"{self.table.name}.{self.model_cls.get_key_name()}"
        return self._clone().where(key_column, key).first()

    def find_or_fail(self, key: Any) -> Model:
        model = self.find(key)
        if model is None:
            raise ModelNotFound(self.model_cls.__name__, key)
        return model

    def find_many(self, keys: Iterable[Any]) -> ModelCollection:
        key_column = f"{self.table.name}.{self.model_cls.get_key_name()}"
        return self._clone().where_in(key_column, keys).get()

    def cursor(self) -> Iterator[Model]:
        """Yield hydrated models one at a time without building a collection."""
        for row in self.database.select_rows(self.to_statement()):
            yield self._hydrate(row)

    def pluck(self, column: Column) -> list[Any]:
        """Return the raw values of one column."""
        resolved = self._resolve_column(column)
        rows = self.database.select_rows(self.to_statement([resolved.label("value")]))
        return [row["value"] for row in rows]

    def _aggregate(self, function: str, column: Column) -> Any:
        if column == "*":
            expression = func.count()
        else:
            expression = getattr(func, function)(self._resolve_column(column))
        return self.database.scalar(self.to_statement([expression], aggregate=True))

    def count(self, column: Column = "*") -> int:
        return int(self._aggregate("count", column) or 0)

    def sum(self, column: Column) -> Any:
        return self._aggregate("sum", column)

    def avg(self, column: Column) -> Any:
        return self._aggregate("avg", column)

    def min(self, column: Column) -> Any:
        return self._aggregate("min", column)

    def max(self, column: Column) -> Any:
        return self._aggregate("max", column)

    def exists(self) -> bool:
        return self.count() > 0
