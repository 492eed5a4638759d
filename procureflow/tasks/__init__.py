from procureflow.tasks.notifications import deliver_workflow_notification  # noqa: F401
