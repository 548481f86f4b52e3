"""
Services Layer

Scheduling engine services that:
- Accept transient model instances (no session required)
- Return new instances/collections instead of mutating their inputs
- Do NOT depend on HTTP request/response objects
- Do NOT touch the database, except schedule_store which bridges to it
"""
