from __future__ import annotations

from contextlib import contextmanager

from app.quoteboard.db import build_engine, make_sessionmaker


@contextmanager
def script_session(db_url: str):
    engine = build_engine(db_url)
    s = make_sessionmaker(engine)()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
        engine.dispose()
