"""Space Math: arithmetic arcade game logic."""

from .events import EventChannel, SessionSummary
from .evolution import EVOLUTION_STAGES, progress_within_stage, stage_for_xp, xp_to_next_stage
from .problems import DIFFICULTY_CONFIGS, MathProblem, Operation, ProblemGenerator, generate_wrong_answers
from .profiles import Profile, ProfileStore, apply_session_summary
from .scheduling import FakeClock, RealClock, Scheduler
from .session import GameMode, GameSession, Phase, SessionSettings, SessionState, transition

__version__ = "0.1.0"

__all__ = [
    "DIFFICULTY_CONFIGS",
    "EVOLUTION_STAGES",
    "EventChannel",
    "FakeClock",
    "GameMode",
    "GameSession",
    "MathProblem",
    "Operation",
    "Phase",
    "ProblemGenerator",
    "Profile",
    "ProfileStore",
    "RealClock",
    "Scheduler",
    "SessionSettings",
    "SessionState",
    "SessionSummary",
    "apply_session_summary",
    "generate_wrong_answers",
    "progress_within_stage",
    "stage_for_xp",
    "transition",
    "xp_to_next_stage",
]
