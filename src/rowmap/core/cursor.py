"""Materialized result cursor shared by every store.

Both stores fetch the full result set eagerly and hand back a
:class:`RowCursor`, so callers see one positioned-access contract
regardless of the driver. A fresh cursor sits *before* the first row;
``move_to_first()`` positions it.

Usage::

    cursor = store.query("items", ["_id_id", "name"], None)
    if cursor.move_to_first():
        while not cursor.is_after_last():
            print(cursor.get_int("_id_id"), cursor.get_string("name"))
            cursor.move_to_next()
    cursor.close()

    # or simply
    with store.raw_query("SELECT * FROM items") as cursor:
        for row in cursor:
            print(row["name"])
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from typing import Any

from rowmap.core.errors import ColumnNotFoundError, DatabaseError


class RowCursor:
    """Positioned cursor over an in-memory list of rows."""

    def __init__(self, columns: Sequence[str], rows: Sequence[Sequence[Any]]) -> None:
        self._columns = list(columns)
        self._index = {name: i for i, name in enumerate(self._columns)}
        self._rows = [tuple(r) for r in rows]
        self._position = -1
        self._closed = False

    # -- navigation --------------------------------------------------------

    @property
    def columns(self) -> list[str]:
        return list(self._columns)

    @property
    def count(self) -> int:
        return len(self._rows)

    @property
    def position(self) -> int:
        return self._position

    def move_to_first(self) -> bool:
        self._position = 0
        return bool(self._rows)

    def move_to_next(self) -> bool:
        if self._position < len(self._rows):
            self._position += 1
        return self._position < len(self._rows)

    def is_after_last(self) -> bool:
        return self._position >= len(self._rows)

    # -- column access -----------------------------------------------------

    def column_index(self, name: str) -> int:
        """Index of ``name`` in the result set, or -1 when absent."""
        return self._index.get(name, -1)

    def get_value(self, column: int | str) -> Any:
        row = self._current_row()
        return row[self._resolve(column)]

    def get_int(self, column: int | str) -> int | None:
        value = self.get_value(column)
        return None if value is None else int(value)

    def get_float(self, column: int | str) -> float | None:
        value = self.get_value(column)
        return None if value is None else float(value)

    def get_string(self, column: int | str) -> str | None:
        value = self.get_value(column)
        return None if value is None else str(value)

    def is_null(self, column: int | str) -> bool:
        return self.get_value(column) is None

    def row_dict(self) -> dict[str, Any]:
        """Current row as a column-name mapping."""
        return dict(zip(self._columns, self._current_row(), strict=True))

    def _resolve(self, column: int | str) -> int:
        if isinstance(column, str):
            index = self._index.get(column)
            if index is None:
                raise ColumnNotFoundError(column, self._columns)
            return index
        if not 0 <= column < len(self._columns):
            raise ColumnNotFoundError(str(column), self._columns)
        return column

    def _current_row(self) -> tuple[Any, ...]:
        if self._closed:
            raise DatabaseError("Cursor is closed")
        if not 0 <= self._position < len(self._rows):
            raise DatabaseError(
                f"Cursor is not positioned on a row (position {self._position}, count {self.count})"
            )
        return self._rows[self._position]

    # -- lifecycle ---------------------------------------------------------

    def close(self) -> None:
        self._closed = True
        self._rows = []

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> Iterator[Mapping[str, Any]]:
        for row in self._rows:
            yield dict(zip(self._columns, row, strict=True))

    def __len__(self) -> int:
        return len(self._rows)

    def __enter__(self) -> RowCursor:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"RowCursor(columns={self._columns!r}, count={self.count}, position={self._position})"


__all__ = ["RowCursor"]
