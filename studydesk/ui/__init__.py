"""Terminal front-ends for the study queue."""

from .console import ConsoleUI
from .modern import ModernUI

__all__ = ["ConsoleUI", "ModernUI"]
