import logging
import os
import sys


def _build_logger():
    logger = logging.getLogger("admin_2fa")

    # handlers are attached once even if the module is reloaded
    if logger.handlers:
        return logger

    logger.setLevel(os.getenv("LOG_LEVEL", "DEBUG").upper())
    logger.propagate = False

    formatter = logging.Formatter(
        "[%(asctime)s] [%(levelname)s] %(name)s "
        "%(message)s  (in %(filename)s:%(lineno)d)"
    )

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    logger.addHandler(stdout_handler)

    return logger


log = _build_logger()


def handle_global_exception(exc_type, exc_value, exc_traceback):
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return

    log.critical(
        "Uncaught exception",
        exc_info=(exc_type, exc_value, exc_traceback),
    )


sys.excepthook = handle_global_exception
