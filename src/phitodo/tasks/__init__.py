"""
Task subsystem.

Components:
- task_models.py: data structures (Task, Project, ExternalRef, enums)
- task_store.py: SQLite-backed storage + query/update helpers
- project_resolver.py: repo -> auto-created Project
- task_api.py: small high-level helpers for user actions
"""
