import copy
import logging
import uuid
from collections import defaultdict
from functools import lru_cache
from typing import Any, Dict, List

from asgiref.sync import sync_to_async
from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)

Record = Dict[str, Any]

ENTITIES = ('user', 'restaurant', 'employee', 'inventory', 'menu_item', 'order', 'promotion', 'reservation')


class RecordNotFound(LookupError):
    pass


class LocMemBackend:
    """
    Process-local record store used in development and tests.

    Nested lists in a payload (a restaurant's `inventory` rows...) are stored
    as records of the child entity pointing back at the parent through
    `<parent>_id`, the way the production API persists nested creates.
    """

    def __init__(self):
        self._records: Dict[str, Dict[str, Record]] = defaultdict(dict)

    def list(self, entity: str) -> List[Record]:
        return [copy.deepcopy(r) for r in self._records[self._check(entity)].values()]

    def get(self, entity: str, pk: str) -> Record:
        try:
            return copy.deepcopy(self._records[self._check(entity)][str(pk)])
        except KeyError:
            raise RecordNotFound(f"{entity} {pk} not found")

    def create(self, entity: str, values: Record) -> Record:
        self._check(entity)
        scalars, children = self._split(values)
        record = dict(scalars, id=str(scalars.get('id') or uuid.uuid4()))
        self._records[entity][record['id']] = record

        for child_entity, rows in children.items():
            for row in rows:
                self.create(child_entity, dict(row, **{f'{entity}_id': record['id']}))

        logger.info(f"Created {entity} {record['id']}")
        return copy.deepcopy(record)

    def update(self, entity: str, pk: str, values: Record) -> Record:
        current = self._records[self._check(entity)].get(str(pk))
        if current is None:
            raise RecordNotFound(f"{entity} {pk} not found")
        scalars, _ = self._split(values)
        current.update({k: v for k, v in scalars.items() if k != 'id'})
        logger.info(f"Updated {entity} {pk}")
        return copy.deepcopy(current)

    def delete(self, entity: str, pk: str) -> Record:
        try:
            record = self._records[self._check(entity)].pop(str(pk))
        except KeyError:
            raise RecordNotFound(f"{entity} {pk} not found")
        logger.info(f"Deleted {entity} {pk}")
        return record

    @staticmethod
    def _check(entity: str) -> str:
        if entity not in ENTITIES:
            raise ValueError(f"Unknown entity '{entity}'")
        return entity

    @staticmethod
    def _split(values: Record):
        scalars, children = {}, {}
        for key, value in values.items():
            if key in ENTITIES and isinstance(value, list):
                children[key] = value
            else:
                scalars[key] = copy.deepcopy(value)
        return scalars, children


@lru_cache(maxsize=None)
def get_backend():
    """The backend named by FORM_ENGINE['API_BACKEND'], one instance per process."""
    backend_class = import_string(settings.FORM_ENGINE['API_BACKEND'])
    return backend_class()


class RestaurantApi:
    """
    Async entry points used by the form pages: relation fetchers and the
    create/update calls behind each page's submit button.
    """

    def __init__(self, backend=None):
        self.backend = backend if backend is not None else get_backend()

    async def list(self, entity: str) -> List[Record]:
        return await sync_to_async(self.backend.list)(entity)

    async def get(self, entity: str, pk: str) -> Record:
        return await sync_to_async(self.backend.get)(entity, pk)

    async def create(self, entity: str, values: Record) -> Record:
        return await sync_to_async(self.backend.create)(entity, values)

    async def update(self, entity: str, pk: str, values: Record) -> Record:
        return await sync_to_async(self.backend.update)(entity, pk, values)

    async def delete(self, entity: str, pk: str) -> Record:
        return await sync_to_async(self.backend.delete)(entity, pk)

    # Relation fetchers

    async def get_users(self) -> List[Record]:
        return await self.list('user')

    async def get_restaurants(self) -> List[Record]:
        return await self.list('restaurant')

    # Page calls

    async def get_promotion_by_id(self, pk: str) -> Record:
        return await self.get('promotion', pk)

    async def create_restaurant(self, values: Record) -> Record:
        return await self.create('restaurant', values)

    async def update_promotion_by_id(self, pk: str, values: Record) -> Record:
        return await self.update('promotion', pk, values)
