"""
Task subsystem.

Components:
- task_models.py: data structures (Task, NewTask, Priority)
- task_records.py: Task <-> backend record conversion
- task_cache.py: per-owner in-memory buckets
- optimistic.py: apply / remote / rollback protocol for cache mutations
- task_sync.py: cache & sync layer (live subscriptions + optimistic writes)
- task_board.py: observable state container used by the presentation layer
- task_views.py: filtering, sorting, stats and new-task form rules
"""
