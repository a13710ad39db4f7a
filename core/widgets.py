"""
Row field renderers.

Each renderer is a plain callable ``(FieldContext) -> str`` returning the
HTML of one form control, so a group editor can be handed any mix of text,
number, date and relation inputs without knowing their types.
"""
import datetime
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Mapping, Optional

from django import forms
from django.conf import settings
from django.template.loader import render_to_string

from .controller import FormController
from .groups import FieldContext, RenderRowField
from .pickers import RelationPicker, RenderOption

logger = logging.getLogger(__name__)


def date_input_format() -> str:
    return settings.FORM_ENGINE.get('DATE_INPUT_FORMAT', '%d/%m/%Y')


def render_control(ctx: FieldContext, widget: forms.Widget) -> str:
    widget_html = widget.render(ctx.name, ctx.value, attrs={'id': f'id_{ctx.name}'})
    return render_to_string('core/field.html', {
        'name': ctx.name,
        'label': ctx.label,
        'widget': widget_html,
        'error': ctx.error,
    })


def text_input(ctx: FieldContext) -> str:
    return render_control(ctx, forms.TextInput(attrs={'class': 'form-control'}))


def number_input(ctx: FieldContext) -> str:
    return render_control(ctx, forms.NumberInput(attrs={'class': 'form-control', 'step': 'any'}))


def date_input(ctx: FieldContext) -> str:
    widget = forms.DateInput(attrs={'class': 'form-control'}, format=date_input_format())
    return render_control(ctx, widget)


def by_field_name(renderers: Mapping[str, RenderRowField], default: RenderRowField = text_input) -> RenderRowField:
    """
    Route each field to its renderer by name; fields not listed fall back
    to `default`.
    """
    def render(ctx: FieldContext) -> Any:
        return renderers.get(ctx.field_name, default)(ctx)
    return render


# --- Input coercion ---

def coerce_number(raw: Any) -> Any:
    """Numeric inputs store 0 for anything that does not parse."""
    if isinstance(raw, (int, float, Decimal)) and not isinstance(raw, bool):
        return raw
    try:
        number = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        return 0
    if not number.is_finite():
        return 0
    return int(number) if number == number.to_integral_value() else float(number)


def coerce_date(raw: Any) -> Any:
    """
    Parse the UI date format (or ISO 8601). Unparseable input is kept as
    typed so that validation can report it.
    """
    if isinstance(raw, (datetime.date, datetime.datetime)) or raw in (None, ''):
        return raw or None
    text = str(raw).strip()
    for fmt in (date_input_format(), '%Y-%m-%d'):
        try:
            return datetime.datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return text


# --- Nested relation pickers ---

class RelationPickerField:
    """
    Renderer for a relation-valued column of a repeatable group.

    Holds one RelationPicker per row key so that a row keeps its loaded
    options when rows above it are removed. Pickers of removed rows are
    unmounted through `release`.
    """

    def __init__(
        self,
        controller: FormController,
        fetcher: Callable[..., Any],
        render_option: Optional[RenderOption] = None,
        placeholder: str = '',
    ):
        self.controller = controller
        self.fetcher = fetcher
        self.render_option = render_option
        self.placeholder = placeholder
        self.pickers: Dict[str, RelationPicker] = {}
        self.mounted = False

    def picker_for(self, row_key: str, name: str, label: str = '') -> RelationPicker:
        picker = self.pickers.get(row_key)
        if picker is None:
            picker = RelationPicker(
                self.controller,
                name,
                self.fetcher,
                render_option=self.render_option,
                label=label,
                placeholder=self.placeholder,
            )
            self.pickers[row_key] = picker
            if self.mounted:
                picker.mount()
        # Rows shift on removal; the picker follows its row
        picker.name = name
        return picker

    def mount(self) -> None:
        self.mounted = True
        for picker in self.pickers.values():
            picker.mount()

    def unmount(self) -> None:
        self.mounted = False
        for picker in self.pickers.values():
            picker.unmount()

    def release(self, row_key: str) -> None:
        picker = self.pickers.pop(row_key, None)
        if picker is not None:
            picker.unmount()
            logger.debug(f"Released picker for row {row_key}")

    async def wait(self) -> None:
        for picker in list(self.pickers.values()):
            await picker.wait()

    def __call__(self, ctx: FieldContext) -> str:
        return self.picker_for(ctx.row_key, ctx.name, ctx.label).render()
