from tilly.models.account import Account
from tilly.models.base import Base
from tilly.models.person import Person, Reminder, Repeat, RepeatUnit
from tilly.models.push_device import PushDevice

__all__ = [
    "Base",
    "Account",
    "PushDevice",
    "Person",
    "Reminder",
    "Repeat",
    "RepeatUnit",
]
