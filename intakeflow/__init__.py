"""intakeflow: resumable multi-step client intake pipeline."""

from .backends import get_backend
from .config import IntakeConfig, load_config
from .contracts import AnswerSet, StepError, StepOutcome, TerminalResult
from .persistence import get_repository
from .pipeline import IntakePipeline
from .steps import STEPS
from .terminal import TerminalDispatcher

__version__ = "0.1.0"
__all__ = [
    "AnswerSet",
    "IntakeConfig",
    "IntakePipeline",
    "STEPS",
    "StepError",
    "StepOutcome",
    "TerminalDispatcher",
    "TerminalResult",
    "get_backend",
    "get_repository",
    "load_config",
]
