import logging
import re
from typing import Any, Callable, Dict, List, Mapping, Optional, Set

from django.template.loader import render_to_string

from .controller import FormController
from .groups import FieldContext, RenderRowField, RepeatableGroupEditor
from .paths import to_path
from .pickers import RelationPicker
from .widgets import RelationPickerField, text_input

logger = logging.getLogger(__name__)

_INDEX_RE = re.compile(r'\[\d+\]')

Coercer = Callable[[Any], Any]


def field_pattern(name: str) -> str:
    """'inventory[3].quantity' -> 'inventory[*].quantity'"""
    return _INDEX_RE.sub('[*]', name)


class FormPage:
    """
    One create/edit screen: a controller plus the scalar fields, relation
    pickers and repeatable groups laid out on it, in display order.

    Hosts drive it with serialised UI events through `dispatch` and read
    back `snapshot()` / `render()`.
    """

    def __init__(
        self,
        controller: FormController,
        title: str = '',
        submit_label: str = 'Submit',
        success_url: Optional[str] = None,
    ):
        self.controller = controller
        self.title = title
        self.submit_label = submit_label
        self.success_url = success_url
        self.pickers: Dict[str, RelationPicker] = {}
        self.groups: Dict[str, RepeatableGroupEditor] = {}
        self.row_pickers: Dict[str, Dict[str, RelationPickerField]] = {}
        self.coercers: Dict[str, Coercer] = {}
        self.fields: Set[str] = set()
        self.mounted = False
        self._layout: List[Callable[[], str]] = []

    def __repr__(self) -> str:
        return f"<FormPage title={self.title!r}>"

    # --- Layout ---

    def add_field(self, name: str, label: str, render: RenderRowField = text_input, coerce: Optional[Coercer] = None) -> None:
        self.fields.add(name)
        if coerce is not None:
            self.coercers[name] = coerce

        def render_field() -> str:
            return render(FieldContext(
                field_name=name,
                value=self.controller.get_value(name),
                name=name,
                error=self.controller.get_error(name),
                label=label,
            ))
        self._layout.append(render_field)

    def add_picker(self, picker: RelationPicker) -> RelationPicker:
        self.pickers[picker.name] = picker
        self._layout.append(picker.render)
        return picker

    def add_group(
        self,
        editor: RepeatableGroupEditor,
        picker_fields: Optional[Mapping[str, RelationPickerField]] = None,
        coercers: Optional[Mapping[str, Coercer]] = None,
    ) -> RepeatableGroupEditor:
        self.groups[editor.name] = editor
        self.row_pickers[editor.name] = dict(picker_fields or {})
        for picker_field in self.row_pickers[editor.name].values():
            editor.add_remove_listener(picker_field.release)
        for field_name, coerce in (coercers or {}).items():
            self.coercers[f'{editor.name}[*].{field_name}'] = coerce
        self._layout.append(editor.as_html)
        return editor

    # --- Lifecycle ---

    def mount(self) -> None:
        """Start every relation fetch. Must be called from a running event loop."""
        if self.mounted:
            return
        self.mounted = True
        for picker in self.pickers.values():
            picker.mount()
        for fields in self.row_pickers.values():
            for picker_field in fields.values():
                picker_field.mount()
        self._ensure_row_pickers()

    def unmount(self) -> None:
        self.mounted = False
        for picker in self.pickers.values():
            picker.unmount()
        for fields in self.row_pickers.values():
            for picker_field in fields.values():
                picker_field.unmount()

    def reset(self, values: Optional[Dict[str, Any]] = None) -> None:
        """Start the form over; pickers drop rejected selections."""
        self.controller.reset(values)
        for picker in self.all_pickers():
            picker.reset()

    def all_pickers(self) -> List[RelationPicker]:
        pickers = list(self.pickers.values())
        for fields in self.row_pickers.values():
            for picker_field in fields.values():
                pickers.extend(picker_field.pickers.values())
        return pickers

    @property
    def loading(self) -> bool:
        return any(picker.loading for picker in self.all_pickers())

    async def settle(self) -> None:
        """Wait for all pending relation fetches."""
        while self.loading:
            for picker in self.all_pickers():
                await picker.wait()

    def _ensure_row_pickers(self) -> None:
        for group_name, fields in self.row_pickers.items():
            editor = self.groups[group_name]
            for index, key in enumerate(editor.row_keys()):
                for field_name, picker_field in fields.items():
                    label = next((p.label for p in editor.properties if p.field_name == field_name), field_name)
                    picker_field.picker_for(key, f'{group_name}[{index}].{field_name}', label)

    def find_picker(self, name: str) -> Optional[RelationPicker]:
        if name in self.pickers:
            return self.pickers[name]
        segments = to_path(name)
        if len(segments) != 3 or not isinstance(segments[1], int):
            return None
        group_name, index, field_name = segments
        picker_field = self.row_pickers.get(group_name, {}).get(field_name)
        if picker_field is None:
            return None
        keys = self.groups[group_name].row_keys()
        if not 0 <= index < len(keys):
            raise IndexError(f"Row index {index} out of range for '{group_name}'")
        return picker_field.picker_for(keys[index], name)

    # --- Events ---

    async def dispatch(self, event: Mapping[str, Any]) -> bool:
        """
        Apply one UI event. Malformed events are reported through
        `controller.form_error` and return False.
        """
        event_type = event.get('type')
        handler = getattr(self, f'_on_{event_type}', None) if isinstance(event_type, str) else None
        if handler is None:
            return self._reject(event, f"Unknown event type: {event_type!r}")
        try:
            result = await handler(event)
        except (KeyError, IndexError, ValueError, TypeError) as e:
            return self._reject(event, str(e))
        if event_type != 'submit':
            self.controller.form_error = None
        return bool(result)

    def _reject(self, event: Mapping[str, Any], message: str) -> bool:
        logger.warning(f"Rejected form event {dict(event)!r}: {message}")
        self.controller.form_error = message
        return False

    def _coerce(self, name: str, value: Any) -> Any:
        coerce = self.coercers.get(field_pattern(name))
        return coerce(value) if coerce is not None else value

    async def _on_change(self, event: Mapping[str, Any]) -> bool:
        name = event['name']
        segments = to_path(name)
        if len(segments) == 3 and segments[0] in self.groups and isinstance(segments[1], int):
            # Row fields go through the group editor so rows keep their declared fields
            return await self._on_update_row_field({
                'group': segments[0], 'index': segments[1], 'field': segments[2], 'value': event.get('value'),
            })
        if segments[0] in self.groups:
            raise ValueError(f"Rows of '{segments[0]}' are edited one field at a time")
        if name in self.pickers:
            return self.pickers[name].select(event.get('value'))
        if name not in self.fields:
            raise KeyError(f"No field named '{name}' on this form")
        self.controller.handle_change({'name': name, 'value': self._coerce(name, event.get('value'))})
        return True

    async def _on_select(self, event: Mapping[str, Any]) -> bool:
        picker = self.find_picker(event['name'])
        if picker is None:
            raise KeyError(f"No relation field named '{event['name']}'")
        return picker.select(event.get('value'))

    async def _on_refresh(self, event: Mapping[str, Any]) -> bool:
        picker = self.find_picker(event['name'])
        if picker is None:
            raise KeyError(f"No relation field named '{event['name']}'")
        picker.refresh(event.get('search'))
        return True

    async def _on_append_row(self, event: Mapping[str, Any]) -> bool:
        self.groups[event['group']].append_row()
        self._ensure_row_pickers()
        return True

    async def _on_remove_row(self, event: Mapping[str, Any]) -> bool:
        self.groups[event['group']].remove_row(int(event['index']))
        return True

    async def _on_update_row_field(self, event: Mapping[str, Any]) -> bool:
        group_name, index, field_name = event['group'], int(event['index']), event['field']
        editor = self.groups[group_name]
        if field_name in self.row_pickers.get(group_name, {}):
            return self.find_picker(f'{group_name}[{index}].{field_name}').select(event.get('value'))
        name = f'{group_name}[{index}].{field_name}'
        editor.update_field(index, field_name, self._coerce(name, event.get('value')))
        return True

    async def _on_submit(self, event: Mapping[str, Any]) -> bool:
        return await self.controller.handle_submit()

    # --- Output ---

    def snapshot(self) -> Dict[str, Any]:
        controller = self.controller
        return {
            'title': self.title,
            'values': controller.values,
            'errors': controller.errors,
            'is_valid': controller.is_valid,
            'is_submitting': controller.is_submitting,
            'dirty': controller.dirty,
            'loading': self.loading,
            'form_error': controller.form_error,
            'pickers': {name: picker.snapshot() for name, picker in self.pickers.items()},
            'groups': {name: self._group_snapshot(name) for name in self.groups},
            'html': self.render(),
        }

    def _group_snapshot(self, group_name: str) -> Dict[str, Any]:
        """Group state plus the state of its nested pickers, keyed by row index then field."""
        state = self.groups[group_name].snapshot()
        pickers: Dict[int, Dict[str, Any]] = {}
        for index, key in enumerate(state['keys']):
            for field_name, picker_field in self.row_pickers.get(group_name, {}).items():
                picker = picker_field.pickers.get(key)
                if picker is not None:
                    pickers.setdefault(index, {})[field_name] = picker.snapshot()
        state['pickers'] = pickers
        return state

    def render(self) -> str:
        return render_to_string('core/form_page.html', {
            'title': self.title,
            'items': [render_item() for render_item in self._layout],
            'form_error': self.controller.form_error,
            'submit_disabled': not self.controller.is_valid or self.controller.is_submitting,
            'submit_label': self.submit_label,
        })
