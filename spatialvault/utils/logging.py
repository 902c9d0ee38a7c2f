import logging
from typing import Optional, Union

QUIET_LOGGERS = ("urllib3", "fiona", "pyogrio")


def setup_logging(name: str = __name__, log_file: Optional[str] = None,
                  level: Union[int, str] = logging.INFO) -> logging.Logger:
    """Set up and return a logger with a standard format.

    Parameters
    ----------
    name : str
        Name of the logger.
    log_file : Optional[str]
        Optional file path to also write log records.
    level : int or str
        Logging level or level name (``"DEBUG"``), defaults to
        :data:`logging.INFO`.

    Returns
    -------
    logging.Logger
        Configured logger instance.
    """

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(level=level, format=fmt, handlers=handlers, force=True)
    # HTTP and GDAL bindings are chatty at DEBUG
    for noisy in QUIET_LOGGERS:
        logging.getLogger(noisy).setLevel(max(level, logging.WARNING))
    return logging.getLogger(name)
