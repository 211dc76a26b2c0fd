"""
Unit of Work

Explicit transactional context threaded through the engines. Every
multi-table mutation (leave decision, ETF/EPF batch, salary transfer) runs
inside one `with uow.transaction():` block so a failure after partial writes
rolls all of them back.
"""
import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hrms.core.exceptions import AppException, TransactionFailure

logger = logging.getLogger(__name__)


class UnitOfWork:
    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        try:
            yield self.db
            self.db.commit()
        except AppException:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Transaction rolled back: {e}", exc_info=True)
            raise TransactionFailure() from e
        except Exception:
            self.db.rollback()
            raise
