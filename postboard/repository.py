from contextlib import contextmanager
from typing import Iterator, Mapping, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .exceptions import PersistenceError
from .models import Post, utcnow

# Only these fields may be written from client input.
SETTABLE_FIELDS : tuple[str, ...] = ('title', 'content')


@contextmanager
def transaction(session: Session) -> Iterator[Session]:
    '''Commit on success; roll back and raise PersistenceError on a store failure.'''
    try:
        yield session
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise PersistenceError(str(e)) from e


def allowed_fields(fields: Mapping[str, object]) -> dict[str, object]:
    return {name: fields[name] for name in SETTABLE_FIELDS if name in fields}


class PostRepository(Protocol):
    '''
    Storage access for posts.
    Handlers depend on this protocol rather than on a concrete store.
    '''

    def list(self) -> list[Post]:
        '''All posts, newest first.'''
        ...

    def find(self, post_id: int) -> Optional[Post]:
        '''The post with this id, or None.'''
        ...

    def insert(self, fields: Mapping[str, object]) -> Post:
        '''Persist a new post from the allow-listed fields.'''
        ...

    def update(self, post_id: int, fields: Mapping[str, object]) -> Optional[Post]:
        '''
        Overwrite title/content and refresh updated_at.
        - returns None, without touching the store, when the id is unknown
        '''
        ...

    def delete(self, post_id: int) -> bool:
        '''Remove the post; False when the id is unknown.'''
        ...

    def count(self) -> int:
        ...


class SQLAlchemyPostRepository(PostRepository):
    def __init__(self, session: Session):
        self.session = session

    def list(self) -> list[Post]:
        try:
            return self.session.query(Post).order_by(Post.id.desc()).all()
        except SQLAlchemyError as e:
            raise PersistenceError(str(e)) from e

    def find(self, post_id: int) -> Optional[Post]:
        try:
            return self.session.get(Post, post_id)
        except SQLAlchemyError as e:
            raise PersistenceError(str(e)) from e

    def insert(self, fields: Mapping[str, object]) -> Post:
        now = utcnow()
        post = Post(**allowed_fields(fields), created_at=now, updated_at=now)
        with transaction(self.session):
            self.session.add(post)
        return post

    def update(self, post_id: int, fields: Mapping[str, object]) -> Optional[Post]:
        post = self.find(post_id)
        if post is None:
            return None

        with transaction(self.session):
            for name, value in allowed_fields(fields).items():
                setattr(post, name, value)
            post.updated_at = utcnow()
        return post

    def delete(self, post_id: int) -> bool:
        post = self.find(post_id)
        if post is None:
            return False

        with transaction(self.session):
            self.session.delete(post)
        return True

    def count(self) -> int:
        try:
            return self.session.query(Post).count()
        except SQLAlchemyError as e:
            raise PersistenceError(str(e)) from e
