"""
Base module interface for all pipeline stages.

All processing modules must inherit from BaseModule and implement
the async process() method.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..models import TaskContext


class BaseModule(ABC):
    """
    Abstract base class for all pipeline modules.

    Each module receives a TaskContext, processes it, and returns
    the updated TaskContext. Modules should only modify fields
    relevant to their stage.
    """

    def __init__(self, name: Optional[str] = None):
        self.name = name or self.__class__.__name__
        self.last_metrics: Optional[dict] = None

    @abstractmethod
    async def process(self, context: TaskContext) -> TaskContext:
        """
        Process the task context.

        Args:
            context: Current task context with all accumulated data

        Returns:
            Updated TaskContext with this module's contributions

        Raises:
            OperationAborted: If the caller cancelled the analysis
        """
        pass

    async def validate_input(self, context: TaskContext) -> bool:
        """Override in subclasses to add specific validation."""
        return context.image is not None

    def __repr__(self) -> str:
        return f"<{self.name}>"
