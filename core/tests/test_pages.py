from django.test import SimpleTestCase

from core.pages import field_pattern

from .fixtures import build_kitchen_page


class FieldPatternTests(SimpleTestCase):
    def test_indices_become_wildcards(self):
        self.assertEqual(field_pattern('inventory[3].quantity'), 'inventory[*].quantity')
        self.assertEqual(field_pattern('name'), 'name')


class FormPageTests(SimpleTestCase):
    async def mounted_page(self, **kwargs):
        page = build_kitchen_page(**kwargs)
        page.mount()
        await page.settle()
        return page

    async def test_mount_loads_pickers(self):
        page = build_kitchen_page()
        page.mount()
        self.assertTrue(page.loading)
        await page.settle()
        self.assertFalse(page.loading)
        self.assertEqual(page.pickers['owner_id'].options[0]['id'], 'u1')

    async def test_change_event_on_scalar_field(self):
        page = await self.mounted_page()
        self.assertTrue(await page.dispatch({'type': 'change', 'name': 'name', 'value': 'Main kitchen'}))
        self.assertEqual(page.controller.values['name'], 'Main kitchen')

    async def test_change_event_on_picker_goes_through_selection(self):
        page = await self.mounted_page()
        self.assertTrue(await page.dispatch({'type': 'change', 'name': 'owner_id', 'value': 'u2'}))
        self.assertEqual(page.controller.values['owner_id'], 'u2')

        with self.assertLogs('core.pickers', level='WARNING'):
            self.assertFalse(await page.dispatch({'type': 'select', 'name': 'owner_id', 'value': 'nobody'}))
        self.assertEqual(page.controller.values['owner_id'], 'u2')

    async def test_row_events(self):
        page = await self.mounted_page()
        await page.dispatch({'type': 'append_row', 'group': 'inventory'})
        await page.dispatch({'type': 'append_row', 'group': 'inventory'})
        await page.dispatch({'type': 'change', 'name': 'inventory[1].quantity', 'value': '12'})
        await page.dispatch({'type': 'update_row_field', 'group': 'inventory', 'index': 1, 'field': 'unit', 'value': 'kg'})
        await page.dispatch({'type': 'remove_row', 'group': 'inventory', 'index': 0})

        self.assertEqual(page.controller.values['inventory'], [
            {'ingredient_name': '', 'quantity': 12, 'unit': 'kg'},
        ])

    async def test_row_picker_selection(self):
        page = await self.mounted_page()
        await page.dispatch({'type': 'append_row', 'group': 'staff'})
        await page.dispatch({'type': 'append_row', 'group': 'staff'})
        self.assertTrue(page.loading)
        await page.settle()

        self.assertTrue(await page.dispatch({'type': 'change', 'name': 'staff[1].user_id', 'value': 'u1'}))
        self.assertEqual(page.controller.values['staff'][1]['user_id'], 'u1')

        # The second row's picker moves up with its row
        second = page.find_picker('staff[1].user_id')
        await page.dispatch({'type': 'remove_row', 'group': 'staff', 'index': 0})
        self.assertIs(page.find_picker('staff[0].user_id'), second)
        self.assertEqual(second.name, 'staff[0].user_id')
        self.assertEqual(len(page.row_pickers['staff']['user_id'].pickers), 1)

    async def test_malformed_events_are_rejected(self):
        page = await self.mounted_page()
        with self.assertLogs('core.pages', level='WARNING'):
            self.assertFalse(await page.dispatch({'type': 'explode'}))
        self.assertIn('explode', page.controller.form_error)

        with self.assertLogs('core.pages', level='WARNING'):
            self.assertFalse(await page.dispatch({'type': 'remove_row', 'group': 'inventory', 'index': 4}))
        with self.assertLogs('core.pages', level='WARNING'):
            self.assertFalse(await page.dispatch({'type': 'append_row', 'group': 'nope'}))
        with self.assertLogs('core.pages', level='WARNING'):
            self.assertFalse(await page.dispatch({'type': 'change', 'name': 'inventory', 'value': []}))
        with self.assertLogs('core.pages', level='WARNING'):
            self.assertFalse(await page.dispatch({'type': 'change', 'name': 'owner_id[0]', 'value': 'not-a-user'}))
        with self.assertLogs('core.pages', level='WARNING'):
            self.assertFalse(await page.dispatch({'type': 'change', 'name': 'bogus', 'value': 'x'}))
        self.assertIsNone(page.controller.values['owner_id'])
        self.assertNotIn('bogus', page.controller.values)

        await page.dispatch({'type': 'change', 'name': 'name', 'value': 'ok'})
        self.assertIsNone(page.controller.form_error)

    async def test_submit_flow(self):
        submitted = []
        page = await self.mounted_page(submitted=submitted)

        self.assertFalse(await page.dispatch({'type': 'submit'}))
        self.assertEqual(submitted, [])
        self.assertEqual(page.controller.errors['name'], 'This field is required.')

        await page.dispatch({'type': 'change', 'name': 'name', 'value': 'Main kitchen'})
        await page.dispatch({'type': 'select', 'name': 'owner_id', 'value': 'u1'})
        self.assertTrue(await page.dispatch({'type': 'submit'}))
        self.assertEqual(submitted, [{'name': 'Main kitchen', 'owner_id': 'u1', 'inventory': [], 'staff': []}])

    async def test_snapshot_and_render(self):
        page = await self.mounted_page()
        await page.dispatch({'type': 'append_row', 'group': 'inventory'})

        snapshot = page.snapshot()
        self.assertEqual(snapshot['title'], 'Create Kitchen')
        self.assertEqual(snapshot['groups']['inventory']['rows'], [{'ingredient_name': '', 'quantity': 0, 'unit': ''}])
        self.assertEqual(snapshot['pickers']['owner_id']['options'][1]['value'], 'u2')
        self.assertFalse(snapshot['loading'])

        html = snapshot['html']
        self.assertIn('Create Kitchen', html)
        self.assertIn('name="inventory[0].quantity"', html)
        self.assertIn('type="number"', html)
        self.assertIn('Select User', html)

    async def test_unmount_stops_pickers(self):
        page = await self.mounted_page()
        await page.dispatch({'type': 'append_row', 'group': 'staff'})
        page.unmount()
        self.assertFalse(page.loading)
        self.assertTrue(all(not picker.mounted for picker in page.all_pickers()))

    async def test_refresh_event_refetches(self):
        page = await self.mounted_page()
        picker = page.pickers['owner_id']
        generation = picker.generation

        self.assertTrue(await page.dispatch({'type': 'refresh', 'name': 'owner_id', 'search': 'chef'}))
        self.assertEqual(picker.generation, generation + 1)
        await page.settle()
        self.assertEqual(len(picker.options), 2)

        with self.assertLogs('core.pages', level='WARNING'):
            self.assertFalse(await page.dispatch({'type': 'refresh', 'name': 'name'}))

    async def test_only_declared_fields_reach_submit(self):
        submitted = []
        page = await self.mounted_page(submitted=submitted)
        for event in [
            {'type': 'change', 'name': 'owner_id[0]', 'value': 'not-a-user'},
            {'type': 'change', 'name': 'bogus', 'value': 'x'},
        ]:
            with self.assertLogs('core.pages', level='WARNING'):
                self.assertFalse(await page.dispatch(event))

        await page.dispatch({'type': 'change', 'name': 'name', 'value': 'K'})
        self.assertFalse(await page.dispatch({'type': 'submit'}))
        self.assertEqual(page.controller.errors, {'owner_id': 'This field is required.'})

        await page.dispatch({'type': 'select', 'name': 'owner_id', 'value': 'u1'})
        self.assertTrue(await page.dispatch({'type': 'submit'}))
        self.assertEqual(submitted, [{'name': 'K', 'owner_id': 'u1', 'inventory': [], 'staff': []}])

    async def test_row_picker_state_in_group_snapshot(self):
        async def list_users():
            raise ConnectionError("users service down")

        page = build_kitchen_page(fetcher=list_users)
        page.mount()
        with self.assertLogs('core.pickers', level='ERROR'):
            await page.settle()
            await page.dispatch({'type': 'append_row', 'group': 'staff'})
            await page.settle()

        staff = page.snapshot()['groups']['staff']
        cell = staff['pickers'][0]['user_id']
        self.assertEqual(cell['name'], 'staff[0].user_id')
        self.assertIsNone(cell['options'])
        self.assertFalse(cell['loading'])
        self.assertIn('users service down', cell['error'])
        self.assertEqual(page.snapshot()['groups']['inventory']['pickers'], {})

    async def test_row_picker_state_follows_rows(self):
        page = await self.mounted_page()
        await page.dispatch({'type': 'append_row', 'group': 'staff'})
        await page.dispatch({'type': 'append_row', 'group': 'staff'})
        await page.settle()
        await page.dispatch({'type': 'select', 'name': 'staff[1].user_id', 'value': 'u2'})
        await page.dispatch({'type': 'remove_row', 'group': 'staff', 'index': 0})

        pickers = page.snapshot()['groups']['staff']['pickers']
        self.assertEqual(list(pickers), [0])
        self.assertEqual(pickers[0]['user_id']['value'], 'u2')
        self.assertEqual(len(pickers[0]['user_id']['options']), 2)

    async def test_reset_clears_rejected_selections(self):
        page = await self.mounted_page()
        picker = page.pickers['owner_id']
        with self.assertLogs('core.pickers', level='WARNING'):
            await page.dispatch({'type': 'select', 'name': 'owner_id', 'value': 'nobody'})
        self.assertIsNotNone(picker.error)

        page.reset()
        self.assertIsNone(picker.error)
        self.assertNotIn('nobody', page.render())

    async def test_reset_keeps_fetch_failures(self):
        async def list_users():
            raise ConnectionError("users service down")

        page = build_kitchen_page(fetcher=list_users)
        page.mount()
        with self.assertLogs('core.pickers', level='ERROR'):
            await page.settle()

        page.reset()
        self.assertIn('users service down', page.pickers['owner_id'].error)
