import logging
from typing import Optional

LOGGER_NAME = "flipmesh"
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def setup_logging(
    log_file: Optional[str] = None,
    *,
    quiet: bool = False,
    debug: bool = False,
    capture_warnings: bool = True,
) -> logging.Logger:
    """Configure and return the shared `flipmesh` logger.

    No file is written unless `log_file` is given. With `capture_warnings`,
    Python warnings (e.g. numpy RuntimeWarnings from a degenerate mesh) go
    through the same handlers as regular log records.
    """
    logger = logging.getLogger(LOGGER_NAME)
    # Keep propagation enabled so pytest's caplog still sees records when the
    # console handler is suppressed.
    logger.propagate = True

    level = logging.DEBUG if debug else logging.INFO
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)
    handlers = []

    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, mode="w")
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            handlers.append(file_handler)
        except OSError as exc:
            print(f"[logging] Could not open log file '{log_file}': {exc}")

    if not quiet:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    for handler in handlers:
        logger.addHandler(handler)

    logging.captureWarnings(capture_warnings)
    warnings_logger = logging.getLogger("py.warnings")
    for handler in list(warnings_logger.handlers):
        warnings_logger.removeHandler(handler)
    if capture_warnings:
        for handler in handlers:
            warnings_logger.addHandler(handler)

    return logger
