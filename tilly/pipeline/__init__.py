from tilly.pipeline.due import count_due_reminders, is_due
from tilly.pipeline.gate import can_deliver, check_delivery_gate
from tilly.pipeline.recurrence import advance, apply_reminder_update, mark_done, mark_undone

__all__ = [
    "advance",
    "apply_reminder_update",
    "can_deliver",
    "check_delivery_gate",
    "count_due_reminders",
    "is_due",
    "mark_done",
    "mark_undone",
]
