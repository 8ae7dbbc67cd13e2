"""
tasksmith: personal task manager with subtasks and LLM-drafted suggestions.
"""

__version__ = "0.1.0"
