import pytest

from postboard.app import create_app
from postboard.models import db
from postboard.repository import SQLAlchemyPostRepository


@pytest.fixture
def app():
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    })
    yield app
    with app.app_context():
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def repo(app):
    '''Repository bound to a session inside an app context.'''
    with app.app_context():
        yield SQLAlchemyPostRepository(db.session)


@pytest.fixture
def make_post(app):
    def _make_post(title='Hello', content='World'):
        with app.app_context():
            post = SQLAlchemyPostRepository(db.session).insert({'title': title, 'content': content})
            return post.id
    return _make_post


@pytest.fixture
def fetch_post(app):
    def _fetch_post(post_id):
        with app.app_context():
            post = SQLAlchemyPostRepository(db.session).find(post_id)
            return post.to_dict() if post else None
    return _fetch_post


@pytest.fixture
def count_posts(app):
    def _count_posts():
        with app.app_context():
            return SQLAlchemyPostRepository(db.session).count()
    return _count_posts
