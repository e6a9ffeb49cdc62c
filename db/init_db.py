import logging
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel
import models
from database import engine as default_engine


def create_db_and_tables(engine: Engine = default_engine):
    if models.DB_SCHEMA:
        with engine.connect() as connection:
            connection.execute(text(f"CREATE SCHEMA IF NOT EXISTS {models.DB_SCHEMA}"))
            connection.commit()

    SQLModel.metadata.create_all(engine)
    logging.info(f"Created tables: {', '.join(SQLModel.metadata.tables)}")


if __name__ == "__main__":
    create_db_and_tables()
