import os
import logging
from logging.handlers import RotatingFileHandler

from vetmed.core.config import settings

FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _mk_handler(path):
    h = RotatingFileHandler(path, maxBytes=5_000_000, backupCount=5, encoding="utf-8")
    h.setFormatter(logging.Formatter(FORMAT))
    h.setLevel(logging.INFO)
    return h


def _attach_file(logger: logging.Logger, path: str, tag: str) -> None:
    if any(getattr(h, "_vm_tag", "") == tag for h in logger.handlers):
        return
    h = _mk_handler(path)
    h._vm_tag = tag
    logger.addHandler(h)


def configure_logging(log_dir: str | None = None):
    """Console logging for the vetmed package, plus rotating files when a log dir is set.

    Safe to call more than once; handlers are tagged and never duplicated.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    app_logger = logging.getLogger("vetmed")
    app_logger.setLevel(level)
    if not any(getattr(h, "_vm_tag", "") == "console" for h in app_logger.handlers):
        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter(FORMAT))
        console._vm_tag = "console"
        app_logger.addHandler(console)

    outdir = log_dir or settings.log_dir
    if not outdir:
        return
    os.makedirs(outdir, exist_ok=True)

    # vetmed.request -> requests logfile (propagates to the console handler too)
    _attach_file(logging.getLogger("vetmed.request"), os.path.join(outdir, "vetmed-requests.log"), "req")
    # everything else under vetmed -> general logfile
    _attach_file(app_logger, os.path.join(outdir, "vetmed-app.log"), "app")
    # uvicorn errors
    err_logger = logging.getLogger("uvicorn.error")
    _attach_file(err_logger, os.path.join(outdir, "vetmed-uvicorn.log"), "uvicorn")
    err_logger.setLevel(logging.INFO)
