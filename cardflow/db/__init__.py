from cardflow.db.database import engine, async_session_factory, get_async_session, init_db
