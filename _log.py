import logging
import sys

from global_vars import LOG_LEVEL


def setup_logging(level=LOG_LEVEL):
    """
    Configure the root logger with a single stdout handler.

    Args:
        level (str | int): Logging level name or number.

    Returns:
        logging.Logger: The configured root logger.
    """
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove any default handlers
    if logger.hasHandlers():
        logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)

    # Formatter with filename and line number
    formatter = logging.Formatter(
        '[%(asctime)s] [%(levelname)s] [%(filename)s:%(lineno)d] - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)
    return logger
