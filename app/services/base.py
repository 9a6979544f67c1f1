import logging
from sqlalchemy.orm import Session


class BaseService:
    """
    Common base for session-bound services.
    Services own their transaction boundaries: they commit on success and
    roll back before re-raising on failure.
    """

    def __init__(self, db: Session):
        self.db = db
        self._logger = logging.getLogger(self.__class__.__module__)
