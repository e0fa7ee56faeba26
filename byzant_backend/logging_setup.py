import logging

from pythonjsonlogger import jsonlogger


def setup_logging(level: str = "INFO") -> None:
    handler = logging.StreamHandler()
    formatter = jsonlogger.JsonFormatter('%(asctime)s %(levelname)s %(name)s %(message)s',
                                         rename_fields={'levelname': 'level', 'asctime': 'timestamp'})
    handler.setFormatter(formatter)
    root = logging.getLogger()
    # Idempotent across app factory calls (tests build several apps per process).
    for existing in list(root.handlers):
        if isinstance(existing.formatter, jsonlogger.JsonFormatter):
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
