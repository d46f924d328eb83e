"""
TaskHub web layer (FastAPI).

create_app() wires Settings, the configured storage engine and the routers
under /api/v1.
"""
