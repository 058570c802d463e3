"""
Collaboration algorithms, one per mode.
"""

from .single import SingleStrategy
from .parallel import ParallelStrategy
from .sequential import SequentialStrategy
from .debate import DebateStrategy
from .voting import VotingStrategy


def default_strategies():
    """Create one instance of every collaboration algorithm."""
    return [
        SingleStrategy(),
        ParallelStrategy(),
        SequentialStrategy(),
        DebateStrategy(),
        VotingStrategy()
    ]


__all__ = [
    'SingleStrategy',
    'ParallelStrategy',
    'SequentialStrategy',
    'DebateStrategy',
    'VotingStrategy',
    'default_strategies'
]
