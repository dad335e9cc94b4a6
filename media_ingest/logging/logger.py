import logging
import sys


class Log:
    """Centralized pipeline logging.

    Keyword context is rendered as ``key=value`` pairs after the message so
    every line for an upload can be grepped by its ``upload_id``.
    """

    _logger: logging.Logger = logging.getLogger("media_ingest")

    @classmethod
    def configure(cls, log_level: str) -> None:
        """Attach a stdout handler once and set the level."""
        cls._logger.setLevel(log_level.upper())
        if not cls._logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(
                logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
            )
            cls._logger.addHandler(handler)

    @classmethod
    def info(cls, message: str, **context: object) -> None:
        cls._logger.info(cls._render(message, context))

    @classmethod
    def warning(cls, message: str, **context: object) -> None:
        cls._logger.warning(cls._render(message, context))

    @classmethod
    def error(cls, message: str, **context: object) -> None:
        cls._logger.error(cls._render(message, context))

    @classmethod
    def exception(cls, message: str, **context: object) -> None:
        """Log at error level with the active exception's traceback."""
        cls._logger.error(cls._render(message, context), exc_info=True)

    @classmethod
    def debug(cls, message: str, **context: object) -> None:
        cls._logger.debug(cls._render(message, context))

    @staticmethod
    def _render(message: str, context: dict[str, object]) -> str:
        if not context:
            return message
        pairs = " ".join(f"{key}={value}" for key, value in context.items())
        return f"{message} {pairs}"
