"""
GreenDocs - AI-assisted verification of clean-energy installation documents.
"""

__version__ = "0.1.0"
