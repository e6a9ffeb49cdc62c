"""
Sample store: executes compiled queries against the relational database
"""

from abc import ABC, abstractmethod
from typing import List
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import models
from logging_setup import logger
from .utils import row_to_dict


class StoreError(Exception):
    """Raised when the store fails to execute a query"""

    pass


class SampleStore(ABC):
    @abstractmethod
    def run_query(self, query: models.QuerySpec) -> List[models.SampleRow]:
        pass


class SqlSampleStore(SampleStore):
    """Runs a QuerySpec on a SQLAlchemy session, binding every value as a parameter"""

    def __init__(self, db: Session):
        self.db = db

    def run_query(self, query: models.QuerySpec) -> List[models.SampleRow]:
        try:
            result = self.db.execute(text(query.sql), query.params)
            columns = list(result.keys())
            rows = result.fetchall()
        except SQLAlchemyError as e:
            logger.error(f"Sample query failed: {e}")
            raise StoreError(f"Sample query execution failed: {str(e)}") from e

        return [models.SampleRow(**row_to_dict(columns, row)) for row in rows]
