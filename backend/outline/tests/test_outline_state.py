from asgiref.sync import async_to_sync
from django.test import SimpleTestCase, override_settings

from outline.cache import OutlineCache
from outline.domain import Section, TaskNode
from outline.errors import NotFoundError
from outline.service import TemplateOutline
from outline.signals import outline_changed
from outline.view_state import OutlineViewState

from .fakes import FakeBackend


class OutlineCacheTests(SimpleTestCase):
    def setUp(self):
        self.cache = OutlineCache()
        self.cache.load_sections(7, [Section(id=1, title='One', template_id=7, order=1),
                                     Section(id=2, title='Two', template_id=7, order=2)])
        self.cache.replace_tasks(1, [TaskNode(id=10, title='A', section_id=1, estimated_days=3),
                                     TaskNode(id=11, title='B', section_id=1, parent_id=10, estimated_days=2)])

    def test_forest_is_memoized_until_something_changes(self):
        first = self.cache.get_forest(7)
        self.assertIs(self.cache.get_forest(7), first)
        self.cache.replace_tasks(2, [TaskNode(id=20, title='C', section_id=2)])
        second = self.cache.get_forest(7)
        self.assertIsNot(second, first)
        self.assertEqual([o.section.id for o in second], [1, 2])
        self.assertEqual([r.task.id for r in second[1].roots], [20])

    def test_forest_follows_section_order(self):
        self.cache.set_section_order(7, [2, 1])
        self.assertEqual([o.section.title for o in self.cache.get_forest(7)], ['Two', 'One'])

    def test_set_section_order_rejects_non_permutation(self):
        with self.assertRaises(ValueError):
            self.cache.set_section_order(7, [1, 3])

    def test_totals(self):
        self.assertEqual(self.cache.totals(7), (2, 5))

    def test_unknown_template(self):
        with self.assertRaises(NotFoundError):
            self.cache.get_forest(99)

    def test_changes_are_signalled(self):
        reasons = []

        def receiver(sender, template_id=None, reason=None, **kwargs):
            reasons.append((template_id, reason))

        outline_changed.connect(receiver)
        try:
            self.cache.replace_tasks(2, [])
            self.cache.set_section_order(7, [2, 1], reason='optimistic')
        finally:
            outline_changed.disconnect(receiver)
        self.assertEqual(reasons, [(7, 'tasks'), (7, 'optimistic')])


class OutlineViewStateTests(SimpleTestCase):
    def test_first_load_expands_every_section(self):
        state = OutlineViewState()
        state.initialize([1, 2, 3])
        state.toggle_section(2)
        state.initialize([1, 2, 3, 4])
        self.assertEqual(state.expanded_sections, {1, 3})

    def test_toggle_and_edit(self):
        state = OutlineViewState()
        self.assertTrue(state.toggle_task(5))
        self.assertFalse(state.toggle_task(5))
        state.start_editing(5)
        self.assertEqual(state.editing_task_id, 5)
        state.stop_editing()
        self.assertIsNone(state.editing_task_id)


class TemplateOutlineTests(SimpleTestCase):
    def setUp(self):
        self.backend = FakeBackend()
        self.template_id = self.backend.add_template()
        self.prep = self.backend.add_section(self.template_id, 'Preparation')
        self.meeting = self.backend.add_section(self.template_id, 'Meeting')
        self.kickoff = self.backend.add_task(self.prep, 'Kickoff')
        self.agenda = self.backend.add_task(self.prep, 'Agenda', self.kickoff)
        self.notes = self.backend.add_task(self.prep, 'Notes', self.agenda)
        self.deep = self.backend.add_task(self.prep, 'Deep', self.notes)
        self.deeper = self.backend.add_task(self.prep, 'Deeper', self.deep)
        self.outline = TemplateOutline(self.template_id, backend=self.backend, cache=OutlineCache())
        async_to_sync(self.outline.open)()

    def tearDown(self):
        self.outline.close()

    def visible(self):
        return [(row.task.title if row.task else row.section.title, row.indent) for row in self.outline.rows()]

    def test_open_expands_sections_but_not_tasks(self):
        self.assertEqual(self.visible(), [('Preparation', 0), ('Kickoff', 0), ('Meeting', 0)])

    @override_settings(OUTLINE_MAX_VISUAL_DEPTH=2)
    def test_indent_is_capped_for_deep_trees(self):
        for task_id in (self.kickoff, self.agenda, self.notes, self.deep):
            self.outline.view.toggle_task(task_id)
        self.assertEqual(self.visible(), [
            ('Preparation', 0), ('Kickoff', 0), ('Agenda', 1), ('Notes', 2), ('Deep', 2), ('Deeper', 2),
            ('Meeting', 0),
        ])

    def test_collapsed_section_hides_tasks(self):
        self.outline.view.toggle_section(self.prep)
        self.assertEqual(self.visible(), [('Preparation', 0), ('Meeting', 0)])

    def test_add_subtask_expands_parent(self):
        async_to_sync(self.outline.add_subtask)(self.kickoff, 'Room booking')
        self.assertIn(('Room booking', 1), self.visible())

    def test_deleted_task_is_pruned_from_view_state(self):
        self.outline.view.toggle_task(self.kickoff)
        self.outline.view.start_editing(self.kickoff)
        async_to_sync(self.outline.delete_task)(self.kickoff)
        self.assertNotIn(self.kickoff, self.outline.view.expanded_tasks)
        self.assertIsNone(self.outline.view.editing_task_id)
        # Agenda lost its parent and is shown as a root
        self.assertIn(('Agenda', 0), self.visible())

    def test_drop_reorders_sections(self):
        self.assertTrue(async_to_sync(self.outline.drop_on)(self.meeting, self.prep))
        self.assertEqual([o.section.title for o in self.outline.get_forest()], ['Meeting', 'Preparation'])

    def test_new_section_is_expanded_and_counted(self):
        section = async_to_sync(self.outline.create_section)('Wrap-up')
        self.assertTrue(self.outline.view.is_section_expanded(section.id))
        self.assertEqual(self.outline.totals(), (5, 0))
