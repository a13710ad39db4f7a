import datetime
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import SimpleTestCase

from restaurants import forms


class FieldTests(SimpleTestCase):
    def test_whole_number_field_accepts_integral_floats(self):
        field = forms.WholeNumberField()
        self.assertEqual(field.clean(5.0), 5)
        self.assertEqual(field.clean('7'), 7)
        with self.assertRaises(ValidationError):
            field.clean(2.5)

    def test_relation_field_keeps_identifiers_as_strings(self):
        field = forms.RelationField()
        self.assertEqual(field.clean(42), '42')
        self.assertEqual(field.clean('u1'), 'u1')
        with self.assertRaises(ValidationError):
            field.clean(None)


class EntityFormTests(SimpleTestCase):
    def test_promotion_end_before_start(self):
        form = forms.PromotionForm(data={
            'title': 'Happy hour',
            'start_date': datetime.date(2024, 3, 10),
            'end_date': '05/03/2024',
            'discount_amount': 5,
        })
        self.assertFalse(form.is_valid())
        self.assertEqual(form.errors['end_date'], ["End date cannot be before the start date."])

    def test_menu_item_optional_fields(self):
        form = forms.MenuItemForm(data={'name': 'Pho bo', 'price': '8.50'})
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.cleaned_data['price'], Decimal('8.50'))

    def test_record_forms_require_restaurant(self):
        form = forms.InventoryRecordForm(data={'ingredient_name': 'Rice', 'quantity': 3, 'unit': 'kg'})
        self.assertFalse(form.is_valid())
        self.assertIn('restaurant_id', form.errors)


class RestaurantSchemaTests(SimpleTestCase):
    def test_nested_rows_are_validated(self):
        errors = forms.restaurant_schema.validate({
            'name': 'Pho 24',
            'owner_id': 'u1',
            'inventory': [
                {'ingredient_name': 'Rice', 'quantity': 10, 'unit': 'kg'},
                {'ingredient_name': 'Fish sauce', 'quantity': 0, 'unit': ''},
            ],
            'reservation': [
                {'date': datetime.date(2024, 3, 5), 'time': datetime.date(2024, 3, 5), 'party_size': 4, 'customer_id': None},
            ],
        })
        self.assertEqual(errors, {
            'inventory': {1: {'unit': 'This field is required.'}},
            'reservation': {0: {'customer_id': 'This field is required.'}},
        })

    def test_scalar_errors(self):
        errors = forms.restaurant_schema.validate({'name': '', 'owner_id': None})
        self.assertEqual(set(errors), {'name', 'owner_id'})

    def test_user_schema(self):
        self.assertEqual(forms.user_schema.validate({'roq_user_id': 'r1', 'tenant_id': 't1'}), {})
