"""Test suite for the orchestration engine."""
