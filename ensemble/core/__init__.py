"""
Core classes of the collaboration orchestration engine.
"""

from .base_strategy import BaseStrategy, ExecutionRun
from .brain_selector import BrainSelector
from .collaboration_executor import CollaborationExecutor
from .decision_store import DecisionStore
from .execution_manager import AgentInvoker
from .provider_registry import ProviderRegistry
from .strategy_analyzer import StrategyAnalyzer
from .strategy_parser import StrategyParser

__all__ = [
    'BaseStrategy',
    'ExecutionRun',
    'BrainSelector',
    'CollaborationExecutor',
    'DecisionStore',
    'AgentInvoker',
    'ProviderRegistry',
    'StrategyAnalyzer',
    'StrategyParser'
]
