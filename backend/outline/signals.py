from django.dispatch import Signal

# sent by OutlineCache whenever a template's cached sections or tasks change;
# kwargs: template_id, reason
outline_changed = Signal()

# sent by SectionOrderingEngine on every state transition of a reorder gesture;
# kwargs: template_id, state, order
section_order_changed = Signal()
