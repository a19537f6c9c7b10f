"""
Domain layer for form submission business logic.

This layer contains:
- Data models and result types (explicit success/failure handling)
- Submission schemas (validation rules)
- Endpoint definitions (schema + emails + messages)
- The shared validate -> verify -> guard -> notify pipeline
- Response shaping
"""
