"""
Core indicator and reminder logic for the menubar pup.
"""

from .indicator import IndicatorState, IndicatorStateController  # noqa: F401
from .reminder_scheduler import ReminderScheduler  # noqa: F401
