"""
Job subsystem.

Components:
- task_models.py: Task base class and Session
- registry.py: task-type name -> constructor
- builtin.py: generic task types (echo, fetch_page)
- job.py: signin + ordered, failure-isolated task execution
- job_store.py: SQLite-backed session/job records
- dispatch.py: rate-limited, state-gated dispatch wrapper
- service.py: state machine + queue + registry owner
- worker.py: the single worker loop
"""
