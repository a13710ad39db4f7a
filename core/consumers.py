import asyncio
import json
import logging
from typing import Any, Dict, Optional
from urllib.parse import parse_qs

from channels.generic.websocket import AsyncJsonWebsocketConsumer
from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.utils.module_loading import import_string

from .pages import FormPage

logger = logging.getLogger(__name__)


def get_page_builders() -> Dict[str, Any]:
    """
    Page builders are registered by dotted path in FORM_ENGINE['PAGES'];
    each one is ``async builder(object_id=None) -> FormPage``.
    """
    return import_string(settings.FORM_ENGINE.get('PAGES', 'restaurants.pages.PAGE_BUILDERS'))


class FormSessionConsumer(AsyncJsonWebsocketConsumer):
    """
    Hosts one create/edit page per websocket connection.

    Every event received from the browser is dispatched to the page and
    answered with a fresh state snapshot. Snapshots are pushed again once
    pending relation fetches have settled.
    """

    page: Optional[FormPage] = None
    _settle_task: Optional[asyncio.Task] = None
    _last_pending = False

    async def connect(self) -> None:
        page_name = self.scope['url_route']['kwargs']['page_name']
        builder = get_page_builders().get(page_name)
        if builder is None:
            logger.warning(f"Unknown form page '{page_name}'")
            await self.close(code=4404)
            return

        query = parse_qs(self.scope.get('query_string', b'').decode())
        object_id = query.get('id', [None])[0]
        try:
            self.page = await builder(object_id=object_id)
        except LookupError as e:
            logger.warning(f"Cannot open '{page_name}' for id {object_id!r}: {e}")
            await self.close(code=4404)
            return

        self.page.mount()
        await self.accept()
        await self.push_state()

    async def disconnect(self, close_code: int) -> None:
        if self._settle_task is not None:
            self._settle_task.cancel()
        if self.page is not None:
            self.page.unmount()

    async def receive_json(self, content: Dict[str, Any], **kwargs) -> None:
        if self.page is None:
            return
        if not isinstance(content, dict):
            await self.send_json({'type': 'error', 'message': 'Events must be JSON objects.'})
            return

        ok = await self.page.dispatch(content)
        if content.get('type') == 'submit' and ok:
            await self.send_json({'type': 'submitted', 'redirect': self.page.success_url})
            return
        await self.push_state()

    async def push_state(self) -> None:
        """
        Send the current snapshot. A snapshot taken while fetches are
        pending is followed by another one once they settle.
        """
        await self._send_snapshot()
        if self._last_pending and (self._settle_task is None or self._settle_task.done()):
            self._settle_task = asyncio.ensure_future(self._push_when_settled())

    async def _send_snapshot(self) -> None:
        self._last_pending = self.page.loading
        await self.send_json({'type': 'state', 'state': self.page.snapshot()})

    async def _push_when_settled(self) -> None:
        while self.page.mounted and (self._last_pending or self.page.loading):
            await self.page.settle()
            if self.page.mounted:
                await self._send_snapshot()

    @classmethod
    async def encode_json(cls, content: Dict[str, Any]) -> str:
        return json.dumps(content, cls=DjangoJSONEncoder)
