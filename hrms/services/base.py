import logging
from typing import Optional
from sqlalchemy.orm import Session


class BaseService:
    """
    Common base for DB-bound services.

    Holds the caller's session and a module-scoped logger; never opens or
    commits transactions on its own.
    """

    def __init__(self, db: Session, user_id: Optional[int] = None):
        self.db = db
        self.user_id = user_id
        self._logger = logging.getLogger(self.__class__.__module__)

    def log_info(self, message: str, **extra):
        self._logger.info(message, extra=extra or None)

    def log_warning(self, message: str, **extra):
        self._logger.warning(message, extra=extra or None)
