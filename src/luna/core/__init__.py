"""
Core module - configuration, time source, background scheduling.

Components:
- config: Settings management via pydantic-settings
- clock: Injectable clock with cancellable timers
- orchestrator: Periodic maintenance scheduler
- logging: Structured logging setup
"""

from luna.core.clock import Clock, ManualClock, SystemClock
from luna.core.config import Settings

__all__ = ["Clock", "ManualClock", "Settings", "SystemClock"]
