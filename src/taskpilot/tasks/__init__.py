"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskState)
- task_store.py: SQLite-backed storage
- transitions.py: lifecycle graph + TransitionValidator
- resolver.py: free-text name -> task (exact, then substring)
- outcomes.py: uniform Outcome + tagged error variants
- dispatcher.py: one operation per action, always returns an Outcome
- task_api.py: free-text entry point used by connectors
"""
