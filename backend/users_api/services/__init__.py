# Services package init
"""
Users API - Services Layer
===========================

What:  Business logic between routes (HTTP) and the document store.
Why:   Routes handle HTTP; services handle store calls and error translation.

Service Inventory:
    - UserService: create/list/count users, maps driver errors to app errors
"""
