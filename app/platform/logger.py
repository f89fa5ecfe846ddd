import logging
import os
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

log_dir = os.path.join(os.getcwd(), "logs")
log_file_path = os.path.join(log_dir, "referidos.log")


def get_logger(name: str, level: int = logging.INFO):
    """
    Logger that writes to the console and to a rotating file under ./logs.
    Calling it twice with the same name returns the already configured logger.
    """
    logger = logging.getLogger(name)

    if logger.handlers:
        return logger

    logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT)

    os.makedirs(log_dir, exist_ok=True)
    file_handler = RotatingFileHandler(log_file_path, maxBytes=10_000_000, backupCount=5)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # handlers above already print; avoid duplicates through the root logger
    logger.propagate = False

    return logger
