from src.db.connection import Base, check_db_health, dispose_engine, get_db, get_engine, get_sessionmaker

__all__ = ["Base", "get_engine", "get_sessionmaker", "get_db", "dispose_engine", "check_db_health"]
