import logging
import sys


class _SafeExtraFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        record.user_id = getattr(record, "user_id", "-")
        record.fields = getattr(record, "fields", "-")
        return super().format(record)


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if root.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    formatter = _SafeExtraFormatter(
        fmt="%(asctime)s %(levelname)s %(name)s %(message)s user_id=%(user_id)s fields=%(fields)s",
    )
    handler.setFormatter(formatter)

    root.setLevel(level.upper())
    root.addHandler(handler)
