"""A small kitchen form page shared by the page and consumer tests."""
from django import forms
from django.forms import formset_factory

from core.controller import FormController
from core.fetchers import static_fetcher
from core.groups import GroupField, RepeatableGroupEditor
from core.pages import FormPage
from core.pickers import RelationPicker
from core.schemas import FormSchema
from core.widgets import RelationPickerField, by_field_name, coerce_number, number_input

USERS = [{'id': 'u1', 'email': 'chef@example.com'}, {'id': 'u2', 'email': 'cook@example.com'}]


class KitchenForm(forms.Form):
    name = forms.CharField()
    owner_id = forms.CharField()


class InventoryLineForm(forms.Form):
    ingredient_name = forms.CharField()
    quantity = forms.IntegerField(min_value=0)
    unit = forms.CharField()


class StaffForm(forms.Form):
    role = forms.CharField()
    user_id = forms.CharField()


kitchen_schema = FormSchema(KitchenForm, groups={
    'inventory': formset_factory(InventoryLineForm, extra=0),
    'staff': formset_factory(StaffForm, extra=0),
})


def build_kitchen_page(submitted=None, fetcher=None):
    fetcher = fetcher or static_fetcher(USERS)
    controller = FormController(
        initial_values={'name': '', 'owner_id': None, 'inventory': [], 'staff': []},
        validation_schema=kitchen_schema,
    )
    if submitted is not None:
        controller.on_submit = submitted.append

    page = FormPage(controller, title='Create Kitchen', success_url='/kitchens')
    page.add_field('name', 'Name')
    page.add_picker(RelationPicker(controller, 'owner_id', fetcher, label='Owner', placeholder='Select User'))

    page.add_group(
        RepeatableGroupEditor(
            controller,
            name='inventory',
            properties=[
                GroupField('ingredient_name', 'ingredient_name'),
                GroupField('quantity', 'quantity'),
                GroupField('unit', 'unit'),
            ],
            row_initial_values={'ingredient_name': '', 'quantity': 0, 'unit': ''},
            render_row_field=by_field_name({'quantity': number_input}),
            title='Inventory',
        ),
        coercers={'quantity': coerce_number},
    )

    staff_user = RelationPickerField(controller, fetcher, placeholder='Select User')
    page.add_group(
        RepeatableGroupEditor(
            controller,
            name='staff',
            properties=[GroupField('role', 'role'), GroupField('user_id', 'user')],
            row_initial_values={'role': '', 'user_id': None},
            render_row_field=by_field_name({'user_id': staff_user}),
            title='Staff',
        ),
        picker_fields={'user_id': staff_user},
    )
    return page


async def kitchen_page(object_id=None):
    return build_kitchen_page()


async def missing_page(object_id=None):
    raise LookupError(f"kitchen {object_id} not found")


FORM_PAGES = {
    'kitchen': kitchen_page,
    'missing': missing_page,
}
