"""
Configuration module for the orchestration service.
"""
