"""
Infrastructure package - Database, repository and file storage.
"""
