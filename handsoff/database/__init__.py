from handsoff.database.database import (
    configure_engine,
    create_session,
    get_db,
    get_engine,
    init_db,
)

__all__ = ["configure_engine", "create_session", "get_db", "get_engine", "init_db"]
