"""Load/vehicle matching"""

from .scoring import MatchConfig
from .engine import MatchEngine, MatchResult, assign_exclusive

__all__ = ['MatchConfig', 'MatchEngine', 'MatchResult', 'assign_exclusive']
