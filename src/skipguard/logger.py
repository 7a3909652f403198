import logging

import notifiers.logging

from skipguard import config


class WorkflowCommandFormatter(logging.Formatter):
    """Render warnings and errors as GitHub Actions workflow commands."""

    commands = {
        logging.WARNING: "warning",
        logging.ERROR: "error",
        logging.CRITICAL: "error",
    }

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        command = self.commands.get(record.levelno)
        if command is None:
            return message
        # workflow commands are single-line, newlines have to be escaped
        escaped = (
            message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")
        )
        return f"::{command}::{escaped}"


def get_log_handlers(logger):
    handlers = []
    if config.GITHUB_ACTIONS:
        handler = logging.StreamHandler()
        handler.setFormatter(WorkflowCommandFormatter("%(message)s"))
        handler.setLevel(logging.WARNING)
        logger.addHandler(handler)
        # annotations replace the plain lines for warnings and errors
        logger.propagate = False
        info_handler = logging.StreamHandler()
        info_handler.setFormatter(logging.Formatter("%(message)s"))
        info_handler.addFilter(lambda record: record.levelno < logging.WARNING)
        logger.addHandler(info_handler)
        handlers += [handler, info_handler]

    if config.TELEGRAM_TOKEN is None:
        return handlers
    handler = notifiers.logging.NotificationHandler(
        "telegram",
        defaults={
            "token": config.TELEGRAM_TOKEN,
            "chat_id": config.TELEGRAM_CHAT_ID,
        },
    )
    handler.setLevel(logging.WARNING)
    logger.addHandler(handler)
    handlers.append(handler)
    return handlers
