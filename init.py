from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from models import Base
import config


def _serializeSqliteTransactions(engine):
    """
    pysqlite сам управляет BEGIN и ломает SAVEPOINT - отдаем транзакции SQLAlchemy.
    BEGIN IMMEDIATE берет блокировку записи сразу: SQLite не знает FOR UPDATE,
    поэтому check-then-act последовательности выполняются строго по очереди.
    """

    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def get_session(database_url: str = None):
    """Создает и возвращает фабрику сессий SQLAlchemy и движок базы данных"""
    url = database_url or config.DATABASE_URL
    isSqlite = url.startswith("sqlite")
    connect_args = {"check_same_thread": False, "timeout": config.SQLITE_BUSY_TIMEOUT} if isSqlite else {}
    engine = create_engine(url, connect_args=connect_args)
    if isSqlite:
        _serializeSqliteTransactions(engine)
    session_factory = sessionmaker(bind=engine)
    return session_factory, engine


def init_tables(engine):
    """Инициализирует таблицы базы данных"""
    Base.metadata.create_all(engine)


Session, engine = get_session()
