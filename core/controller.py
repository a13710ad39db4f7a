import copy
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Protocol, Union

from . import paths
from .exceptions import ValidationFailure

logger = logging.getLogger(__name__)

FormValues = Dict[str, Any]
FieldErrors = Dict[str, Any]
SubmitHandler = Callable[[FormValues], Union[Awaitable[Any], Any]]


class ValidationSchema(Protocol):
    def validate(self, values: FormValues) -> FieldErrors:
        ...


class FormController:
    """
    Owns the values, errors and submission state of one entity form.

    Children (pickers, group editors, field renderers) read from `values`
    and `errors` and write only through `set_field_value` / `handle_change`,
    never by keeping a copy of their own.
    """

    def __init__(
        self,
        initial_values: Optional[FormValues] = None,
        validation_schema: Optional[ValidationSchema] = None,
        on_submit: Optional[SubmitHandler] = None,
        validate_on_change: bool = True,
    ):
        self.initial_values: FormValues = copy.deepcopy(initial_values or {})
        self.values: FormValues = copy.deepcopy(self.initial_values)
        self.errors: FieldErrors = {}
        self.validation_schema = validation_schema
        self.on_submit = on_submit
        self.validate_on_change = validate_on_change
        self.is_submitting = False
        self.submit_count = 0
        self.form_error: Optional[str] = None

    # --- State ---

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def dirty(self) -> bool:
        return self.values != self.initial_values

    def get_value(self, name: str, default: Any = None) -> Any:
        return paths.get_in(self.values, name, default)

    def get_error(self, name: str) -> Any:
        return paths.get_in(self.errors, name)

    # --- Updates ---

    def set_field_value(self, name: str, value: Any, validate: Optional[bool] = None) -> None:
        self.values = paths.set_in(self.values, name, value)
        if self.validate_on_change if validate is None else validate:
            self.validate()

    def handle_change(self, event: Mapping[str, Any]) -> None:
        """
        Apply a serialised input event: {"name": "inventory[0].unit", "value": "kg"}.
        """
        self.set_field_value(event['name'], event.get('value'))

    def set_field_error(self, name: str, error: Any) -> None:
        if error is None or error == {} or error == '':
            self.errors = _discard(self.errors, paths.to_path(name))
        else:
            self.errors = paths.set_in(self.errors, name, error)

    def set_errors(self, errors: FieldErrors) -> None:
        self.errors = dict(errors)

    def reset(self, values: Optional[FormValues] = None) -> None:
        if values is not None:
            self.initial_values = copy.deepcopy(values)
        self.values = copy.deepcopy(self.initial_values)
        self.errors = {}
        self.is_submitting = False
        self.form_error = None

    # --- Validation & submission ---

    def validate(self) -> FieldErrors:
        if self.validation_schema is None:
            self.errors = {}
        else:
            self.errors = self.validation_schema.validate(self.values)
        return self.errors

    async def handle_submit(self) -> bool:
        """
        Validate and hand the values to the submit handler.
        Returns True only when the handler completed without raising.
        """
        self.submit_count += 1
        self.form_error = None

        errors = self.validate()
        if errors:
            failure = ValidationFailure(errors)
            logger.info(f"Submission blocked: {failure}")
            return False

        if self.on_submit is None:
            return True

        self.is_submitting = True
        try:
            result = self.on_submit(copy.deepcopy(self.values))
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.exception("Submit handler failed")
            self.form_error = str(e) or e.__class__.__name__
            return False
        finally:
            self.is_submitting = False
        return True


def _discard(container: Any, path: list) -> Any:
    """Remove the leaf at `path` from a nested errors structure, copy-on-write."""
    segment, rest = path[0], path[1:]
    if isinstance(container, dict):
        if segment not in container:
            return container
        updated = dict(container)
        if rest:
            child = _discard(updated[segment], rest)
            if child:
                updated[segment] = child
            else:
                del updated[segment]
        else:
            del updated[segment]
        return updated
    return container
