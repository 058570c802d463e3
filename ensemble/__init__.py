"""
Ensemble: collaboration orchestration across multiple LLM providers.
"""

__version__ = "1.0.0"
