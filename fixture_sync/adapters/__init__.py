from .federation import plan as plan_federation
from .league import plan as plan_league
from .verification import plan as plan_verification
from .transport import FetchError, FetchTask

__all__ = [
    "FetchError",
    "FetchTask",
    "plan_federation",
    "plan_league",
    "plan_verification",
]
