import logging
import sys
from datetime import datetime
from pathlib import Path

DEFAULT_FORMAT = "%(asctime)s | %(levelname)s:%(name)s:%(message)s"
DEFAULT_DATEFMT = "%Y-%m-%d %H:%M:%S"


def setup_logger(
    level: str | int = logging.INFO,
    name: str = "sparsegrid",
    log_to_file: bool = False,
    log_folder: Path = Path("./.logs"),
    redirect_to_stdout: bool = True,
    force: bool = True,
    fmt: str = DEFAULT_FORMAT,
    datefmt: str = DEFAULT_DATEFMT,
) -> logging.Logger:
    """Configure a named logger with a console handler and an optional file handler.

    Args:
        level (str | int): The logging level (e.g., 'info', 'debug', logging.WARNING).
        name (str): The name of the logger.
        log_to_file (bool, optional): Whether to also log to a file. Defaults to False.
        log_folder (Path, optional): Directory for the log file. Defaults to "./.logs".
        redirect_to_stdout (bool, optional): Log to stdout instead of stderr. Defaults to True.
        force (bool, optional): Remove and close existing handlers of the logger first. Defaults to True.
        fmt (str, optional): Format string for log records.
        datefmt (str, optional): Format string for timestamps.

    Returns:
        logging.Logger: The configured logger.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Invalid logging level: {level}")

    logger = logging.getLogger(name)

    if force:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

    # Prevent double logging through the root logger
    logger.propagate = False
    logger.setLevel(level)
    formatter = logging.Formatter(fmt, datefmt=datefmt)

    if not logger.handlers:
        stream = sys.stdout if redirect_to_stdout else sys.stderr
        console_handler = logging.StreamHandler(stream)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

        if log_to_file:
            log_folder = Path(log_folder)
            log_folder.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            file_handler = logging.FileHandler(log_folder / f"{name}_{timestamp}.log")
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logger
