import copy
import itertools
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from django.core.exceptions import NON_FIELD_ERRORS
from django.template.loader import render_to_string

from .controller import FormController
from .paths import join_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GroupField:
    """One column of a repeatable group: the sub-entity field and its label."""
    field_name: str
    label: str


@dataclass(frozen=True)
class FieldContext:
    """Everything a row field renderer needs to draw one (row, field) cell."""
    field_name: str
    value: Any
    name: str
    error: Optional[str]
    label: str
    index: Optional[int] = None
    row_key: Optional[str] = None


@dataclass
class RenderedRow:
    key: str
    index: int
    fields: List[Any]
    error: Optional[str] = None


RenderRowField = Callable[[FieldContext], Any]


class RepeatableGroupEditor:
    """
    Edits the ordered list of RowDrafts stored under one parent field
    (a restaurant's employees, inventory lines, menu items...).

    Rows are addressed by position. Each row also gets a transient key,
    kept beside the list rather than inside the row, so renderers can
    hold per-row state (nested pickers) across removals.
    """

    def __init__(
        self,
        controller: FormController,
        name: str,
        properties: Iterable[Union[GroupField, Mapping[str, str]]],
        row_initial_values: Mapping[str, Any],
        render_row_field: RenderRowField,
        title: str = '',
    ):
        self.controller = controller
        self.name = name
        self.properties = [p if isinstance(p, GroupField) else GroupField(**p) for p in properties]
        self.render_row_field = render_row_field
        self.title = title

        declared = {p.field_name for p in self.properties}
        if set(row_initial_values) != declared:
            raise ValueError(
                f"Default row for '{name}' must define exactly {sorted(declared)}, "
                f"got {sorted(row_initial_values)}"
            )
        # Template only; every append gets its own deep copy
        self.row_initial_values = MappingProxyType(copy.deepcopy(dict(row_initial_values)))

        self._keys: List[str] = []
        self._key_counter = itertools.count(1)
        self._remove_listeners: List[Callable[[str], None]] = []

    def __repr__(self) -> str:
        return f"<RepeatableGroupEditor name={self.name!r} rows={len(self.rows)}>"

    # --- Reading ---

    @property
    def field_names(self) -> List[str]:
        return [p.field_name for p in self.properties]

    @property
    def rows(self) -> List[Dict[str, Any]]:
        return list(self.controller.get_value(self.name) or [])

    @property
    def errors(self) -> Dict[Any, Any]:
        errors = self.controller.get_error(self.name)
        return errors if isinstance(errors, dict) else {}

    def row_errors(self, index: int) -> Dict[str, str]:
        errors = self.errors.get(index)
        return errors if isinstance(errors, dict) else {}

    def row_keys(self) -> List[str]:
        self._sync_keys(len(self.rows))
        return list(self._keys)

    def add_remove_listener(self, listener: Callable[[str], None]) -> None:
        """`listener(row_key)` is called after a row is removed."""
        self._remove_listeners.append(listener)

    # --- Operations ---

    def append_row(self) -> int:
        """Append a copy of the default row. No validation runs."""
        rows = self.rows
        self._sync_keys(len(rows))
        rows.append(copy.deepcopy(dict(self.row_initial_values)))
        self._keys.append(self._new_key())
        self.controller.set_field_value(self.name, rows, validate=False)
        return len(rows) - 1

    def remove_row(self, index: int) -> None:
        """
        Delete the row at `index`; later rows shift down by one. Errors of the
        removed row and of every shifted row are dropped until the next
        validation pass.
        """
        rows = self.rows
        self._check_index(index, rows)
        self._sync_keys(len(rows))

        del rows[index]
        key = self._keys.pop(index)
        self.controller.set_field_value(self.name, rows, validate=False)

        kept = {i: e for i, e in self.errors.items() if not (isinstance(i, int) and i >= index)}
        self.controller.set_field_error(self.name, kept or None)

        for listener in self._remove_listeners:
            listener(key)

    def update_field(self, index: int, field_name: str, value: Any) -> None:
        """Replace one field of one row; all other rows and fields are left as they are."""
        if field_name not in self.field_names:
            raise KeyError(f"'{field_name}' is not a field of group '{self.name}'")
        self._check_index(index, self.rows)
        self.controller.set_field_value(join_path(self.name, index, field_name), value)

    # --- Rendering ---

    def render(self) -> List[RenderedRow]:
        rendered = []
        for index, (key, row) in enumerate(zip(self.row_keys(), self.rows)):
            row_errors = self.row_errors(index)
            fields = [
                self.render_row_field(FieldContext(
                    field_name=prop.field_name,
                    value=row.get(prop.field_name),
                    name=join_path(self.name, index, prop.field_name),
                    error=row_errors.get(prop.field_name),
                    label=prop.label,
                    index=index,
                    row_key=key,
                ))
                for prop in self.properties
            ]
            rendered.append(RenderedRow(key=key, index=index, fields=fields, error=row_errors.get(NON_FIELD_ERRORS)))
        return rendered

    def as_html(self) -> str:
        return render_to_string('core/group_editor.html', {
            'name': self.name,
            'title': self.title,
            'rows': self.render(),
        })

    def snapshot(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'title': self.title,
            'fields': [{'field_name': p.field_name, 'label': p.label} for p in self.properties],
            'keys': self.row_keys(),
            'rows': self.rows,
            'errors': self.errors,
        }

    # --- Internals ---

    def _new_key(self) -> str:
        return f"{self.name}-{next(self._key_counter)}"

    def _sync_keys(self, count: int) -> None:
        # Rows can also change through reset/hydration; keep one key per row
        if len(self._keys) > count:
            for key in self._keys[count:]:
                for listener in self._remove_listeners:
                    listener(key)
            del self._keys[count:]
        while len(self._keys) < count:
            self._keys.append(self._new_key())

    @staticmethod
    def _check_index(index: int, rows: list) -> None:
        if not isinstance(index, int) or not 0 <= index < len(rows):
            raise IndexError(f"Row index {index!r} out of range (0..{len(rows) - 1})")
