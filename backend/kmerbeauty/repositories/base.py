"""
Shared repository plumbing.
"""
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session


class BaseRepository:
    """Holds the request session used by every query of a repository."""
    
    def __init__(self, db_session: Session):
        self.db = db_session
    
    @contextmanager
    def isolated(self) -> Iterator[None]:
        """
        Run the block inside a savepoint.
        
        A failed statement rolls back only its own savepoint, so the
        session stays usable for the queries that follow.
        """
        with self.db.begin_nested():
            yield
