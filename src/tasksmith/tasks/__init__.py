"""
Task subsystem.

Components:
- task_models.py: data structures (Task, Priority, TaskAggregate, SubtaskEntry)
- task_store.py: SQLite-backed record store
- aggregator.py: flat records -> main task + subtasks groupings
- board.py: owned snapshot of records/aggregates, refreshed on demand
- subtask_order.py: local subtask ordering for the task being edited
- coordinator.py: multi-record create/update/delete of a task with its subtasks
- identity.py: owner identity (authenticated or local pseudo-id)
- editor.py: form-side editing session
"""
