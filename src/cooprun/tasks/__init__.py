"""
Task subsystem.

Components:
- task_models.py: lifecycle states (TaskState)
- cancel.py: cooperative cancellation tokens
- task_runner.py: TaskRunner scope and the Task handle it returns
"""
