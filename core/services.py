"""
Base service class.
Services hold the business rules and use repositories for data access.
"""
import logging


class BaseService:
    """
    Common plumbing for domain services.

    The logger is named after the service module (``payments.services``,
    ``copro.services``...) so the LOGGING config can tune each domain.
    """

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__module__)

    def _format(self, message: str, context: dict) -> str:
        if not context:
            return f"{self.__class__.__name__}: {message}"
        pairs = " ".join(f"{key}={value}" for key, value in sorted(context.items()))
        return f"{self.__class__.__name__}: {message} | {pairs}"

    def log_info(self, message: str, **context):
        self.logger.info(self._format(message, context))

    def log_warning(self, message: str, **context):
        self.logger.warning(self._format(message, context))

    def log_error(self, message: str, exc_info: bool = False, **context):
        """Pass exc_info=True from inside an except block to keep the traceback"""
        self.logger.error(self._format(message, context), exc_info=exc_info)
