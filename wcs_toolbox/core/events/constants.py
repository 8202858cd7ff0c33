"""
Event Type Constants.

Standard event types for application-wide pub/sub messaging.

Usage:
    from wcs_toolbox.core.events import Events, EventBus

    event_bus.subscribe(Events.TASK_CHANGED, on_task_changed)
"""


class Events:
    """
    Standard event type constants for EventBus.

    Organized by domain (task queue, config, app lifecycle).
    """

    # Task queue events
    TASK_CHANGED = "task.changed"
    TASK_LIST_CHANGED = "task.list_changed"

    # Config events
    CONFIG_CHANGED = "config.changed"

    # Application lifecycle events
    APP_STARTED = "app.started"
