from django import forms
from django.forms import formset_factory

from core.schemas import FormSchema

DATE_INPUT_FORMATS = ['%Y-%m-%d', '%d/%m/%Y']


class RelationField(forms.CharField):
    """
    Foreign-key identifier chosen through a relation picker. Identifiers are
    opaque strings (UUIDs from the identity service, database keys...).
    """

    def to_python(self, value):
        if value is not None and not isinstance(value, str):
            value = str(value)
        return super().to_python(value)


class WholeNumberField(forms.IntegerField):
    """Integer field that also accepts the floats numeric inputs may send (5.0)."""

    def to_python(self, value):
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        return super().to_python(value)


# --- Sub-entity forms (rows of a repeatable group) ---

class EmployeeForm(forms.Form):
    role = forms.CharField(max_length=255)
    permissions = forms.CharField(max_length=255)
    user_id = RelationField()


class InventoryForm(forms.Form):
    ingredient_name = forms.CharField(max_length=255)
    quantity = WholeNumberField()
    unit = forms.CharField(max_length=255)


class MenuItemForm(forms.Form):
    name = forms.CharField(max_length=255)
    description = forms.CharField(required=False)
    price = forms.DecimalField(max_digits=10, decimal_places=2, min_value=0)
    image_url = forms.CharField(required=False, max_length=2048)


class OrderForm(forms.Form):
    status = forms.CharField(max_length=255)
    total_price = forms.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    created_at = forms.DateField(input_formats=DATE_INPUT_FORMATS)
    customer_id = RelationField()


class PromotionForm(forms.Form):
    title = forms.CharField(max_length=255)
    description = forms.CharField(required=False)
    start_date = forms.DateField(input_formats=DATE_INPUT_FORMATS)
    end_date = forms.DateField(input_formats=DATE_INPUT_FORMATS)
    discount_amount = forms.DecimalField(max_digits=10, decimal_places=2, min_value=0)

    def clean(self):
        cleaned_data = super().clean()
        start, end = cleaned_data.get('start_date'), cleaned_data.get('end_date')
        if start and end and end < start:
            self.add_error('end_date', "End date cannot be before the start date.")
        return cleaned_data


class ReservationForm(forms.Form):
    date = forms.DateField(input_formats=DATE_INPUT_FORMATS)
    time = forms.DateField(input_formats=DATE_INPUT_FORMATS)
    party_size = WholeNumberField(min_value=0)
    customer_id = RelationField()


# --- Standalone records (carry their parent restaurant) ---

class EmployeeRecordForm(EmployeeForm):
    restaurant_id = RelationField()


class InventoryRecordForm(InventoryForm):
    restaurant_id = RelationField()


class MenuItemRecordForm(MenuItemForm):
    restaurant_id = RelationField()


class OrderRecordForm(OrderForm):
    restaurant_id = RelationField()


class PromotionRecordForm(PromotionForm):
    restaurant_id = RelationField()


class ReservationRecordForm(ReservationForm):
    restaurant_id = RelationField()


class RestaurantForm(forms.Form):
    name = forms.CharField(max_length=255)
    owner_id = RelationField()


class UserForm(forms.Form):
    roq_user_id = forms.CharField(max_length=255)
    tenant_id = forms.CharField(max_length=255)


# --- Row formsets ---

EmployeeFormSet = formset_factory(EmployeeForm, extra=0)
InventoryFormSet = formset_factory(InventoryForm, extra=0)
MenuItemFormSet = formset_factory(MenuItemForm, extra=0)
OrderFormSet = formset_factory(OrderForm, extra=0)
PromotionFormSet = formset_factory(PromotionForm, extra=0)
ReservationFormSet = formset_factory(ReservationForm, extra=0)


# --- Validation schemas, one per entity ---

employee_schema = FormSchema(EmployeeRecordForm)
inventory_schema = FormSchema(InventoryRecordForm)
menu_item_schema = FormSchema(MenuItemRecordForm)
order_schema = FormSchema(OrderRecordForm)
promotion_schema = FormSchema(PromotionRecordForm)
reservation_schema = FormSchema(ReservationRecordForm)

restaurant_schema = FormSchema(RestaurantForm, groups={
    'employee': EmployeeFormSet,
    'inventory': InventoryFormSet,
    'menu_item': MenuItemFormSet,
    'order': OrderFormSet,
    'promotion': PromotionFormSet,
    'reservation': ReservationFormSet,
})

user_schema = FormSchema(UserForm)
