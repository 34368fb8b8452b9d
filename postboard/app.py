import os, io, secrets, logging
from urllib.parse import parse_qs
from typing import Any, Callable, Mapping, Optional, Union

import click
from flask import Blueprint, Flask, render_template, redirect, request, url_for, flash, Response
from dotenv import load_dotenv
from pythonjsonlogger.json import JsonFormatter

from .migrate import upgrade_database
from .models import db, Post
from .repository import PostRepository, SQLAlchemyPostRepository
from .validation import validate_post_input
from .exceptions import PostNotFound, PostValidationError, PersistenceError

load_dotenv()

logger : logging.Logger = logging.getLogger('postboard')
handler = logging.StreamHandler()
handler.setFormatter(JsonFormatter('%(asctime)s %(levelname)s %(name)s %(message)s'))
logger.addHandler(handler)
logger.setLevel(logging.INFO)


class MethodOverrideMiddleware:
    '''Let HTML forms reach PUT/PATCH/DELETE routes.

    A POST carrying `_method` in its urlencoded body, or an
    X-HTTP-Method-Override header, is dispatched as that method.
    '''

    allowed_methods : frozenset[str] = frozenset(['PUT', 'PATCH', 'DELETE'])
    form_content_type : str = 'application/x-www-form-urlencoded'

    def __init__(self, wsgi_app: Callable) -> None:
        self.wsgi_app = wsgi_app

    def __call__(self, environ: dict, start_response: Callable) -> Any:
        if environ.get('REQUEST_METHOD', '').upper() == 'POST':
            method : str = environ.get('HTTP_X_HTTP_METHOD_OVERRIDE', '')
            if not method and environ.get('CONTENT_TYPE', '').startswith(self.form_content_type):
                method = self._form_method(environ)
            if method.upper() in self.allowed_methods:
                environ['REQUEST_METHOD'] = method.upper()
        return self.wsgi_app(environ, start_response)

    @staticmethod
    def _form_method(environ: dict) -> str:
        try:
            length : int = int(environ.get('CONTENT_LENGTH') or 0)
        except ValueError:
            return ''
        if length <= 0:
            # unknown length (chunked): leave the stream untouched
            return ''
        body : bytes = environ['wsgi.input'].read(length)
        # put the body back for the request parser
        environ['wsgi.input'] = io.BytesIO(body)
        values = parse_qs(body.decode('latin-1'))
        return values.get('_method', [''])[0]


def get_post_repository() -> PostRepository:
    return SQLAlchemyPostRepository(db.session)


def find_post_or_fail(repo: PostRepository, post_id: int) -> Post:
    post : Optional[Post] = repo.find(post_id)
    if post is None:
        raise PostNotFound(post_id)
    return post


def welcome() -> str:
    return render_template('index.html')


def index() -> str:
    posts : list[Post] = get_post_repository().list()
    return render_template('posts/index.html', posts=posts)


def create() -> str:
    return render_template('posts/create.html', errors={}, old={})


def store() -> Union[Response, tuple[str, int]]:
    try:
        fields : dict[str, str] = validate_post_input(request.form)
    except PostValidationError as e:
        logger.info({'msg': 'post_invalid', 'fields': sorted(e.errors)})
        return render_template('posts/create.html', errors=e.errors, old=e.old), 422

    post : Post = get_post_repository().insert(fields)
    logger.info({'msg': 'post_created', 'id': post.id})
    flash('Post created successfully.', 'success')
    return redirect(url_for('posts.index'), code=303)


def show(post_id: int) -> str:
    post : Post = find_post_or_fail(get_post_repository(), post_id)
    return render_template('posts/show.html', post=post)


def edit(post_id: int) -> str:
    post : Post = find_post_or_fail(get_post_repository(), post_id)
    old : dict[str, str] = {'title': post.title, 'content': post.content}
    return render_template('posts/edit.html', post=post, errors={}, old=old)


def update(post_id: int) -> Union[Response, tuple[str, int]]:
    repo : PostRepository = get_post_repository()
    post : Post = find_post_or_fail(repo, post_id)
    try:
        fields : dict[str, str] = validate_post_input(request.form)
    except PostValidationError as e:
        logger.info({'msg': 'post_invalid', 'id': post.id, 'fields': sorted(e.errors)})
        return render_template('posts/edit.html', post=post, errors=e.errors, old=e.old), 422

    if repo.update(post.id, fields) is None:
        raise PostNotFound(post.id)
    logger.info({'msg': 'post_updated', 'id': post.id})
    flash('Post updated successfully.', 'success')
    return redirect(url_for('posts.index'), code=303)


def destroy(post_id: int) -> Response:
    repo : PostRepository = get_post_repository()
    post : Post = find_post_or_fail(repo, post_id)
    if not repo.delete(post.id):
        raise PostNotFound(post.id)
    logger.info({'msg': 'post_deleted', 'id': post_id})
    flash('Post deleted successfully.', 'success')
    return redirect(url_for('posts.index'), code=303)


# (methods, rule, endpoint, view)
ROUTES : list[tuple[tuple[str, ...], str, str, Callable]] = [
    (('GET',), '/posts', 'index', index),
    (('GET',), '/posts/create', 'create', create),
    (('POST',), '/posts', 'store', store),
    (('GET',), '/posts/<int:post_id>', 'show', show),
    (('GET',), '/posts/<int:post_id>/edit', 'edit', edit),
    (('PUT', 'PATCH'), '/posts/<int:post_id>', 'update', update),
    (('DELETE',), '/posts/<int:post_id>', 'destroy', destroy),
]


def register_routes(app: Flask) -> None:
    posts = Blueprint('posts', __name__)
    for methods, rule, endpoint, view in ROUTES:
        posts.add_url_rule(rule, endpoint, view, methods=list(methods))
    app.register_blueprint(posts)
    app.add_url_rule('/', 'welcome', welcome)


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(PostNotFound)
    def post_not_found(error: PostNotFound) -> tuple[str, int]:
        logger.info({'msg': 'post_not_found', 'id': error.post_id})
        return render_template('404.html', message=error.message), 404

    @app.errorhandler(404)
    def not_found(_error) -> tuple[str, int]:
        return render_template('404.html', message=None), 404

    @app.errorhandler(PersistenceError)
    def persistence_failed(error: PersistenceError) -> tuple[str, int]:
        logger.exception({'msg': 'persistence_failed', 'path': request.path})
        return render_template('500.html'), 500


def register_request_logging(app: Flask) -> None:
    @app.before_request
    def log_request_start() -> None:
        logger.debug({'msg': 'request_start', 'method': request.method, 'path': request.path})

    @app.after_request
    def log_request_end(response: Response) -> Response:
        logger.info({'msg': 'request_end', 'method': request.method, 'path': request.path,
                     'status': response.status_code})
        return response


def create_app(test_config: Optional[Mapping[str, Any]] = None) -> Flask:
    app : Flask = Flask(__name__)
    app.config.from_mapping(
        SECRET_KEY=os.getenv('SECRET_KEY') or secrets.token_hex(16),
        SQLALCHEMY_DATABASE_URI=os.getenv('DATABASE_URL', 'sqlite:///data.db'),
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
        LOG_LEVEL=os.getenv('LOG_LEVEL', 'INFO'),
        AUTO_MIGRATE=os.getenv('AUTO_MIGRATE', '1').lower() not in ('0', 'false', 'no'),
    )
    if test_config:
        app.config.update(test_config)

    app.config['LOG_LEVEL'] = str(app.config['LOG_LEVEL']).strip().upper()
    logger.setLevel(app.config['LOG_LEVEL'])
    db.init_app(app)
    app.wsgi_app = MethodOverrideMiddleware(app.wsgi_app)

    register_routes(app)
    register_error_handlers(app)
    register_request_logging(app)

    @app.cli.command('init-db')
    def init_db() -> None:
        '''Apply all pending migrations to the configured database.'''
        upgrade_database(app)
        click.echo('Initialized the database.')

    # the schema is owned by the alembic migrations
    if app.config['AUTO_MIGRATE']:
        upgrade_database(app)

    return app


# python -m postboard.app
if __name__ == '__main__':
    port : int = int(os.getenv('PORT', '5000'))
    logger.info({'msg': 'server_start', 'port': port})
    create_app().run(host='0.0.0.0', port=port)
