import asyncio
import inspect
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from django.conf import settings
from django.forms import Select
from django.template.loader import render_to_string
from django.utils.translation import gettext as _

from .controller import FormController
from .exceptions import FetchFailure
from .fetchers import RelationOption, as_async_fetcher, default_render_option, option_id

logger = logging.getLogger(__name__)

RenderOption = Callable[[RelationOption], Tuple[Any, str]]


class RelationPicker:
    """
    Asynchronous single-value selector bound to one relation field.

    Options are fetched once per mount and cached for the lifetime of the
    picker. Every fetch gets a generation number; a result is applied only
    if its generation is still the current one and the picker is mounted,
    so a superseded or post-unmount response is dropped.
    """

    def __init__(
        self,
        controller: FormController,
        name: str,
        fetcher: Callable[..., Any],
        render_option: Optional[RenderOption] = None,
        label: str = '',
        placeholder: str = '',
    ):
        self.controller = controller
        self.name = name
        self.fetcher = as_async_fetcher(fetcher)
        self.render_option = render_option or default_render_option
        self.label = label
        self.placeholder = placeholder

        self.options: Optional[List[RelationOption]] = None
        self.error: Optional[str] = None
        self.mounted = False
        self._fetch_failed = False
        self._generation = 0
        self._task: Optional[asyncio.Task] = None

    def __repr__(self) -> str:
        return f"<RelationPicker name={self.name!r} generation={self._generation}>"

    # --- Lifecycle ---

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def loading(self) -> bool:
        return self.mounted and self._task is not None and not self._task.done()

    def mount(self) -> None:
        """Start the initial fetch. Mounting twice does not fetch twice."""
        if self.mounted:
            return
        self.mounted = True
        self._start_fetch()

    def refresh(self, search: Any = None) -> None:
        """Fetch again, superseding any fetch still in flight."""
        if not self.mounted:
            logger.warning(f"Refresh ignored for unmounted picker '{self.name}'")
            return
        self._start_fetch(search)

    def unmount(self) -> None:
        self.mounted = False
        # Invalidate whatever is still in flight
        self._generation += 1

    def reset(self) -> None:
        """Drop a rejected selection. A fetch failure stays until the next fetch."""
        if not self._fetch_failed:
            self.error = None

    async def wait(self) -> None:
        """Wait until the most recent fetch has finished (applied or discarded)."""
        while self._task is not None and not self._task.done():
            await asyncio.wait({self._task})

    def _start_fetch(self, search: Any = None) -> None:
        self._generation += 1
        self.error = None
        self._fetch_failed = False
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._load(self._generation, search))

    def _is_current(self, generation: int) -> bool:
        return self.mounted and generation == self._generation

    async def _load(self, generation: int, search: Any) -> None:
        try:
            if search is None:
                result = await self.fetcher()
            else:
                result = await self.fetcher(search)
            if inspect.isawaitable(result):
                result = await result
            options = list(result)
        except Exception as e:
            if not self._is_current(generation):
                logger.debug(f"Ignoring failure of stale fetch for '{self.name}': {e}")
                return
            failure = FetchFailure(self.name, e)
            logger.error(str(failure))
            self.error = str(failure)
            self._fetch_failed = True
            return

        if not self._is_current(generation):
            logger.debug(f"Discarding stale options for '{self.name}' (generation {generation})")
            return
        self.options = options

    # --- Selection ---

    @property
    def value(self) -> Any:
        return self.controller.get_value(self.name)

    def select(self, identifier: Any) -> bool:
        """
        Write the chosen identifier into the form. Only identifiers of loaded
        options are accepted; an empty choice clears the field.
        """
        if identifier is None or identifier == '':
            self.error = None
            self.controller.set_field_value(self.name, None)
            return True

        for record in self.options or []:
            record_id = option_id(record)
            if str(record_id) == str(identifier):
                self.error = None
                self.controller.set_field_value(self.name, record_id)
                return True

        self.error = _("Select a valid choice. %(value)s is not one of the available choices.") % {
            'value': identifier,
        }
        logger.warning(f"Rejected selection {identifier!r} for '{self.name}'")
        return False

    # --- Display ---

    def choices(self) -> List[Tuple[Any, str]]:
        return [self.render_option(record) for record in self.options or []]

    def display_error(self) -> Optional[str]:
        """Fetch/selection problems first, then the schema's error for the field."""
        error = self.error or self.controller.get_error(self.name)
        return error if isinstance(error, str) else None

    def snapshot(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'label': self.label,
            'value': self.value,
            'options': None if self.options is None else [
                {'value': value, 'label': label} for value, label in self.choices()
            ],
            'loading': self.loading,
            'error': self.display_error(),
        }

    def render(self) -> str:
        widget_html = ''
        if self.options is not None:
            widget = Select(
                attrs={'class': 'form-select', 'id': f'id_{self.name}'},
                choices=[('', self.placeholder)] + self.choices(),
            )
            widget_html = widget.render(self.name, self.value)
        return render_to_string('core/relation_picker.html', {
            'name': self.name,
            'label': self.label,
            'loading': self.loading or (self.mounted and self.options is None and self.error is None),
            'loading_text': settings.FORM_ENGINE.get('LOADING_TEXT', 'Loading...'),
            'widget': widget_html,
            'error': self.display_error(),
        })
