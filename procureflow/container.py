"""Dependency injection container.

Holds the collaborators the workflow services call out to, so tests can
swap them without patching modules:

    from procureflow.container import container

    with container.notification_dispatcher.override(RecordingDispatcher()):
        job_orders.approve(db, job_order_id, actor)
"""

from __future__ import annotations

from dependency_injector import containers, providers  # type: ignore[import-not-found]


def _get_notification_dispatcher():
    from procureflow.services.notifications import CeleryNotificationDispatcher
    return CeleryNotificationDispatcher()


class Container(containers.DeclarativeContainer):
    """Application dependency injection container."""

    # Fire-and-forget notification delivery
    notification_dispatcher = providers.Singleton(_get_notification_dispatcher)


# Global container instance
container = Container()


def get_container() -> Container:
    """Get the global container instance."""
    return container
