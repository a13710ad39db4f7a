from typing import Any, Dict, Mapping, Optional, Type

from django import forms
from django.core.exceptions import NON_FIELD_ERRORS
from django.forms.formsets import (
    INITIAL_FORM_COUNT, MAX_NUM_FORM_COUNT, MIN_NUM_FORM_COUNT, TOTAL_FORM_COUNT, BaseFormSet,
)
from django.forms.utils import ErrorDict, ErrorList

from .controller import FieldErrors, FormValues


class FormSchema:
    """
    Validation schema backed by Django forms.

    Scalar and single-relation fields are validated by `form_class`; each
    one-to-many field listed in `groups` is validated by its formset class,
    one form per RowDraft. Errors come back in the FieldErrors shape used by
    the controller: ``{'name': 'msg', 'inventory': {0: {'quantity': 'msg'}}}``.
    """

    def __init__(self, form_class: Type[forms.BaseForm], groups: Optional[Mapping[str, Type[BaseFormSet]]] = None):
        self.form_class = form_class
        self.groups = dict(groups or {})

    def validate(self, values: FormValues) -> FieldErrors:
        scalar_data = {k: v for k, v in values.items() if k not in self.groups}
        form = self.form_class(data=scalar_data)

        errors: FieldErrors = {}
        if not form.is_valid():
            errors.update(first_messages(form.errors))

        for name, formset_class in self.groups.items():
            row_errors = self.validate_rows(name, formset_class, values.get(name) or [])
            if row_errors:
                errors[name] = row_errors
        return errors

    @staticmethod
    def validate_rows(prefix: str, formset_class: Type[BaseFormSet], rows: list) -> Dict[Any, Any]:
        formset = formset_class(data=formset_data(prefix, rows), prefix=prefix)
        if formset.is_valid():
            return {}

        row_errors: Dict[Any, Any] = {}
        for index, form_errors in enumerate(formset.errors):
            if form_errors:
                row_errors[index] = first_messages(form_errors)
        non_form = first_message(formset.non_form_errors())
        if non_form:
            row_errors[NON_FIELD_ERRORS] = non_form
        return row_errors


def formset_data(prefix: str, rows: list) -> Dict[str, Any]:
    """
    Build bound formset data for the given rows. Every row counts as an
    initial form so that untouched default rows are still validated.
    """
    data: Dict[str, Any] = {
        f'{prefix}-{TOTAL_FORM_COUNT}': str(len(rows)),
        f'{prefix}-{INITIAL_FORM_COUNT}': str(len(rows)),
        f'{prefix}-{MIN_NUM_FORM_COUNT}': '0',
        f'{prefix}-{MAX_NUM_FORM_COUNT}': '1000',
    }
    for index, row in enumerate(rows):
        for field_name, value in row.items():
            data[f'{prefix}-{index}-{field_name}'] = value
    return data


def first_messages(errors: ErrorDict) -> Dict[str, str]:
    return {field: first_message(field_errors) for field, field_errors in errors.items()}


def first_message(error_list: ErrorList) -> Optional[str]:
    data = error_list.get_json_data()
    return data[0]['message'] if data else None
