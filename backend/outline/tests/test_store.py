from asgiref.sync import async_to_sync
from django.test import TestCase

from outline import store
from outline.backend import OrmBackend
from outline.errors import NotFoundError, ReorderConflictError, ValidationError
from outline.models import Section, TemplateTask
from outline.service import TemplateOutline


class StoreTests(TestCase):
    def setUp(self):
        self.template_id = store.create_template('Client review meeting')
        self.prep = store.create_section(self.template_id, 'Preparation')
        self.followup = store.create_section(self.template_id, 'Follow-up')

    def test_sections_are_appended_in_order(self):
        self.assertEqual([s.order for s in (self.prep, self.followup)], [1, 2])
        self.assertEqual([s.id for s in store.list_sections(self.template_id)], [self.prep.id, self.followup.id])

    def test_reorder_sections_renumbers(self):
        store.reorder_sections(self.template_id, [self.followup.id, self.prep.id])
        sections = store.list_sections(self.template_id)
        self.assertEqual([s.title for s in sections], ['Follow-up', 'Preparation'])
        self.assertEqual([s.order for s in sections], [1, 2])

    def test_reorder_with_stale_list_conflicts(self):
        with self.assertRaises(ReorderConflictError):
            store.reorder_sections(self.template_id, [self.prep.id])
        with self.assertRaises(ReorderConflictError):
            store.reorder_sections(self.template_id, [self.prep.id, self.prep.id])

    def test_tasks_are_listed_by_sibling_order(self):
        first = store.create_task({'section_id': self.prep.id, 'title': 'Gather statements'})
        second = store.create_task({'section_id': self.prep.id, 'title': 'Update plan', 'offset_days': -3})
        child = store.create_task({'section_id': self.prep.id, 'title': 'Scan', 'parent_id': first.id})
        self.assertEqual([first.sort_order, second.sort_order, child.sort_order], [1, 2, 1])
        store.reorder_tasks([{'id': first.id, 'sort_order': 2}, {'id': second.id, 'sort_order': 1}])
        tasks = store.list_tasks_for_section(self.prep.id)
        self.assertEqual([t.title for t in tasks], ['Update plan', 'Scan', 'Gather statements'])
        self.assertEqual(tasks[0].offset_days, -3)

    def test_parent_must_be_in_same_section(self):
        foreign = store.create_task({'section_id': self.followup.id, 'title': 'Thank-you note'})
        with self.assertRaises(ValidationError):
            store.create_task({'section_id': self.prep.id, 'title': 'Bad', 'parent_id': foreign.id})

    def test_update_rejects_cycles(self):
        parent = store.create_task({'section_id': self.prep.id, 'title': 'Parent'})
        child = store.create_task({'section_id': self.prep.id, 'title': 'Child', 'parent_id': parent.id})
        with self.assertRaises(ValidationError):
            store.update_task(parent.id, {'parent_id': child.id})
        updated = store.update_task(child.id, {'title': 'Renamed', 'offset_days': 2})
        self.assertEqual((updated.title, updated.offset_days, updated.parent_id), ('Renamed', 2, parent.id))

    def test_delete_task_leaves_children(self):
        parent = store.create_task({'section_id': self.prep.id, 'title': 'Parent'})
        child = store.create_task({'section_id': self.prep.id, 'title': 'Child', 'parent_id': parent.id})
        store.delete_task(parent.id)
        remaining = store.list_tasks_for_section(self.prep.id)
        self.assertEqual([(t.id, t.parent_id) for t in remaining], [(child.id, parent.id)])
        with self.assertRaises(NotFoundError):
            store.delete_task(parent.id)

    def test_delete_section_cascades(self):
        store.create_task({'section_id': self.prep.id, 'title': 'Gone'})
        store.delete_section(self.prep.id)
        self.assertFalse(Section.objects.filter(pk=self.prep.id).exists())
        self.assertFalse(TemplateTask.objects.filter(section_id=self.prep.id).exists())

    def test_missing_records(self):
        with self.assertRaises(NotFoundError):
            store.list_sections(9999)
        with self.assertRaises(NotFoundError):
            store.update_task(9999, {'title': 'x'})
        with self.assertRaises(NotFoundError):
            store.reorder_tasks([{'id': 9999, 'sort_order': 1}])


class OrmBackedOutlineTests(TestCase):
    def setUp(self):
        self.template_id = store.create_template('Annual review')
        self.prep = store.create_section(self.template_id, 'Preparation')
        self.meeting = store.create_section(self.template_id, 'Meeting')
        self.outline = TemplateOutline(self.template_id, backend=OrmBackend())

    def tearDown(self):
        self.outline.close()

    def test_full_flow_against_database(self):
        async def scenario():
            await self.outline.open()
            root = await self.outline.create_task(self.prep.id, None, 'Collect documents')
            await self.outline.add_subtask(root.id, 'Tax return')
            await self.outline.drop(self.meeting.id, 0)
            return self.outline.get_forest()

        forest = async_to_sync(scenario)()
        self.assertEqual([o.section.title for o in forest], ['Meeting', 'Preparation'])
        prep = forest[1]
        self.assertEqual([r.task.title for r in prep.roots], ['Collect documents'])
        self.assertEqual([c.task.title for c in prep.roots[0].children], ['Tax return'])
        self.assertEqual([s.title for s in store.list_sections(self.template_id)], ['Meeting', 'Preparation'])
