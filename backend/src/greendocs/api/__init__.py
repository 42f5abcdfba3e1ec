"""
HTTP API package - FastAPI routers, schemas and service wiring.
"""
