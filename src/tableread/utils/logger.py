import logging

from ..settings import LoggingSettings


def setup_logger(config: LoggingSettings) -> logging.Logger:
    """
    Sets up root logging from the logging settings.
    """
    level = (config.level or "INFO").upper()
    logging.basicConfig(level=level, format=config.format)

    if config.file:
        file_handler = logging.FileHandler(config.file)
        file_handler.setFormatter(logging.Formatter(config.format))
        logging.getLogger().addHandler(file_handler)

    return logging.getLogger("tableread")
