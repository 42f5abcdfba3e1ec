"""
Domain package - Core business logic with no external dependencies.

This package contains pure Python domain models, the status state machine,
the error taxonomy and the instruction text sent to the models.
"""
