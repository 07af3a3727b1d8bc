"""
Fire-and-forget dispatch of Celery tasks.
"""

import logging

logger = logging.getLogger(__name__)


def dispatch(task, *args, **kwargs) -> bool:
    """
    Queue a task without letting broker problems reach the caller.

    Args:
        task: Celery task
        *args: Task positional arguments
        **kwargs: Task keyword arguments

    Returns:
        True if the task was queued (or ran eagerly)
    """
    try:
        task.delay(*args, **kwargs)
    except Exception as exc:  # pylint: disable=broad-exception-caught
        logger.warning("Could not queue task %s: %s", getattr(task, "name", task), exc)
        return False
    return True
