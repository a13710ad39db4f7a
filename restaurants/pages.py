"""
Create/edit pages of the back office, assembled from the form engine.

Each entity is described once in ENTITY_FIELDS; the same description drives
the entity's own create/edit page and, for restaurant children, the
repeatable group embedded in the restaurant create page.
"""
import datetime
import functools
from typing import Any, Callable, Dict, List, NamedTuple, Optional

from django.utils import timezone
from django.utils.text import capfirst

from core.controller import FormController
from core.groups import GroupField, RepeatableGroupEditor
from core.pages import FormPage
from core.pickers import RelationPicker
from core.widgets import (
    RelationPickerField, by_field_name, coerce_date, coerce_number, date_input, number_input, text_input,
)

from . import forms
from .services import RecordNotFound, RestaurantApi

TEXT, NUMBER, DATE = 'text', 'number', 'date'


class FieldSpec(NamedTuple):
    name: str
    label: str
    kind: str = TEXT
    # 'users' or 'restaurants' for relation fields
    relation: Optional[str] = None


RELATION_PLACEHOLDERS = {
    'users': 'Select User',
    'restaurants': 'Select Restaurant',
}

ENTITY_FIELDS: Dict[str, List[FieldSpec]] = {
    'employee': [
        FieldSpec('role', 'role'),
        FieldSpec('permissions', 'permissions'),
        FieldSpec('user_id', 'user', relation='users'),
    ],
    'inventory': [
        FieldSpec('ingredient_name', 'ingredient_name'),
        FieldSpec('quantity', 'quantity', NUMBER),
        FieldSpec('unit', 'unit'),
    ],
    'menu_item': [
        FieldSpec('name', 'name'),
        FieldSpec('description', 'description'),
        FieldSpec('price', 'price', NUMBER),
        FieldSpec('image_url', 'image_url'),
    ],
    'order': [
        FieldSpec('status', 'status'),
        FieldSpec('total_price', 'total_price', NUMBER),
        FieldSpec('created_at', 'created_at', DATE),
        FieldSpec('customer_id', 'user', relation='users'),
    ],
    'promotion': [
        FieldSpec('title', 'title'),
        FieldSpec('description', 'description'),
        FieldSpec('start_date', 'start_date', DATE),
        FieldSpec('end_date', 'end_date', DATE),
        FieldSpec('discount_amount', 'discount_amount', NUMBER),
    ],
    'reservation': [
        FieldSpec('date', 'date', DATE),
        FieldSpec('time', 'time', DATE),
        FieldSpec('party_size', 'party_size', NUMBER),
        FieldSpec('customer_id', 'user', relation='users'),
    ],
}

ENTITY_TITLES = {
    'employee': ('Employee', 'Employees'),
    'inventory': ('Inventory', 'Inventory'),
    'menu_item': ('Menu Item', 'Menu Items'),
    'order': ('Order', 'Orders'),
    'promotion': ('Promotion', 'Promotions'),
    'reservation': ('Reservation', 'Reservations'),
}

ENTITY_LIST_URLS = {
    'employee': '/employees',
    'inventory': '/inventories',
    'menu_item': '/menu-items',
    'order': '/orders',
    'promotion': '/promotions',
    'reservation': '/reservations',
}

ENTITY_SCHEMAS = {
    'employee': forms.employee_schema,
    'inventory': forms.inventory_schema,
    'menu_item': forms.menu_item_schema,
    'order': forms.order_schema,
    'promotion': forms.promotion_schema,
    'reservation': forms.reservation_schema,
}

RENDERERS = {TEXT: text_input, NUMBER: number_input, DATE: date_input}
COERCERS = {NUMBER: coerce_number, DATE: coerce_date}


def default_values(entity: str, today: Optional[datetime.date] = None) -> Dict[str, Any]:
    """Blank values for a new record: '' for text, 0 for numbers, today for dates."""
    today = today or timezone.localdate()
    defaults = {TEXT: '', NUMBER: 0, DATE: today}
    return {
        spec.name: None if spec.relation else defaults[spec.kind]
        for spec in ENTITY_FIELDS[entity]
    }


def relation_fetchers(api: RestaurantApi) -> Dict[str, Callable[[], Any]]:
    return {'users': api.get_users, 'restaurants': api.get_restaurants}


def build_group(page: FormPage, entity: str, api: RestaurantApi) -> RepeatableGroupEditor:
    """Embed the rows of a child entity in `page`, one group editor per entity."""
    specs = ENTITY_FIELDS[entity]
    fetchers = relation_fetchers(api)

    picker_fields = {
        spec.name: RelationPickerField(
            page.controller,
            fetchers[spec.relation],
            placeholder=RELATION_PLACEHOLDERS[spec.relation],
        )
        for spec in specs if spec.relation
    }
    renderers = {spec.name: RENDERERS[spec.kind] for spec in specs if not spec.relation}
    renderers.update(picker_fields)

    editor = RepeatableGroupEditor(
        page.controller,
        name=entity,
        properties=[GroupField(spec.name, spec.label) for spec in specs],
        row_initial_values=default_values(entity),
        render_row_field=by_field_name(renderers),
        title=ENTITY_TITLES[entity][1],
    )
    return page.add_group(
        editor,
        picker_fields=picker_fields,
        coercers={spec.name: COERCERS[spec.kind] for spec in specs if spec.kind in COERCERS},
    )


def add_scalar_fields(page: FormPage, specs: List[FieldSpec], api: RestaurantApi) -> None:
    fetchers = relation_fetchers(api)
    for spec in specs:
        label = capfirst(spec.name.replace('_', ' ')) if not spec.relation else capfirst(spec.label)
        if spec.relation:
            page.add_picker(RelationPicker(
                page.controller,
                spec.name,
                fetchers[spec.relation],
                label=label,
                placeholder=RELATION_PLACEHOLDERS[spec.relation],
            ))
        else:
            page.add_field(spec.name, label, render=RENDERERS[spec.kind], coerce=COERCERS.get(spec.kind))


# --- Page builders ---

async def restaurant_create_page(object_id: Optional[str] = None, api: Optional[RestaurantApi] = None) -> FormPage:
    api = api or RestaurantApi()
    initial = {'name': '', 'owner_id': None}
    initial.update({entity: [] for entity in ENTITY_FIELDS})

    controller = FormController(initial_values=initial, validation_schema=forms.restaurant_schema)

    async def submit(values):
        await api.create_restaurant(values)
        page.reset()

    controller.on_submit = submit
    page = FormPage(controller, title='Create Restaurant', success_url='/restaurants')
    page.add_field('name', 'Restaurant Name')
    page.add_picker(RelationPicker(
        controller, 'owner_id', api.get_users, label='Owner', placeholder=RELATION_PLACEHOLDERS['users'],
    ))
    for entity in ENTITY_FIELDS:
        build_group(page, entity, api)
    return page


async def user_create_page(object_id: Optional[str] = None, api: Optional[RestaurantApi] = None) -> FormPage:
    api = api or RestaurantApi()
    controller = FormController(
        initial_values={'roq_user_id': '', 'tenant_id': ''},
        validation_schema=forms.user_schema,
    )

    async def submit(values):
        await api.create('user', values)
        page.reset()

    controller.on_submit = submit
    page = FormPage(controller, title='Create User', success_url='/users')
    page.add_field('roq_user_id', 'Roq User Id')
    page.add_field('tenant_id', 'Tenant Id')
    return page


async def record_create_page(entity: str, object_id: Optional[str] = None, api: Optional[RestaurantApi] = None) -> FormPage:
    api = api or RestaurantApi()
    initial = default_values(entity)
    initial['restaurant_id'] = None
    controller = FormController(initial_values=initial, validation_schema=ENTITY_SCHEMAS[entity])

    async def submit(values):
        await api.create(entity, values)
        page.reset()

    controller.on_submit = submit
    page = FormPage(
        controller,
        title=f'Create {ENTITY_TITLES[entity][0]}',
        success_url=ENTITY_LIST_URLS[entity],
    )
    add_scalar_fields(page, ENTITY_FIELDS[entity] + [FieldSpec('restaurant_id', 'Restaurant', relation='restaurants')], api)
    return page


async def record_edit_page(
    entity: str,
    object_id: Optional[str] = None,
    api: Optional[RestaurantApi] = None,
    load: Optional[Callable[[str], Any]] = None,
    save: Optional[Callable[[str, Dict[str, Any]], Any]] = None,
) -> FormPage:
    """
    Edit page hydrated from the stored record. `load`/`save` default to the
    generic entity calls of the API.
    """
    if not object_id:
        raise RecordNotFound(f"An id is required to edit a {entity}")
    api = api or RestaurantApi()
    load = load or functools.partial(api.get, entity)
    save = save or functools.partial(api.update, entity)
    record = await load(object_id)

    specs = ENTITY_FIELDS[entity] + [FieldSpec('restaurant_id', 'Restaurant', relation='restaurants')]

    def hydrate(source):
        values = {spec.name: source.get(spec.name) for spec in specs}
        for spec in specs:
            if spec.kind == DATE:
                values[spec.name] = coerce_date(values[spec.name])
        return values

    controller = FormController(initial_values=hydrate(record), validation_schema=ENTITY_SCHEMAS[entity])

    async def submit(values):
        updated = await save(object_id, values)
        # Keep editing against the saved record
        page.reset(hydrate(updated))

    controller.on_submit = submit
    page = FormPage(
        controller,
        title=f'Edit {ENTITY_TITLES[entity][0]}',
        success_url=ENTITY_LIST_URLS[entity],
    )
    add_scalar_fields(page, specs, api)
    return page


async def promotion_edit_page(object_id: Optional[str] = None, api: Optional[RestaurantApi] = None) -> FormPage:
    api = api or RestaurantApi()
    return await record_edit_page(
        'promotion',
        object_id=object_id,
        api=api,
        load=api.get_promotion_by_id,
        save=api.update_promotion_by_id,
    )


PAGE_BUILDERS: Dict[str, Callable[..., Any]] = {
    'restaurant_create': restaurant_create_page,
    'user_create': user_create_page,
    'promotion_edit': promotion_edit_page,
}
for _entity in ENTITY_FIELDS:
    PAGE_BUILDERS[f'{_entity}_create'] = functools.partial(record_create_page, _entity)
    PAGE_BUILDERS.setdefault(f'{_entity}_edit', functools.partial(record_edit_page, _entity))
