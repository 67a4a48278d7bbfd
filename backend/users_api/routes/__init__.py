# Routes package init
"""
Users API - Routes Package
===========================

Route Inventory:
    - health.py:  GET  /health           (readiness for probes)
    - users.py:   GET  /api/users        (list users)
                  POST /api/users        (create user)
    - info.py:    GET  /                 (service banner)
                  GET  /api              (API liveness)
                  GET  /api/test-db      (connection diagnostics)

Routes stay thin: they read the supervisor snapshot (via dependencies in
database.py), call a service, and shape the response.
"""
