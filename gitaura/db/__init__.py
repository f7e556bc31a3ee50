from gitaura.db.database import (
    async_session_maker,
    create_worker_session_maker,
    get_db,
    init_db,
    insert_if_absent,
)

__all__ = [
    "async_session_maker",
    "create_worker_session_maker",
    "get_db",
    "init_db",
    "insert_if_absent",
]
