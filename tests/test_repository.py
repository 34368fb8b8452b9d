import pytest
from sqlalchemy.exc import OperationalError

from postboard.exceptions import PersistenceError


def test_insert_then_find(repo):
    post = repo.insert({'title': 'Hello', 'content': 'World'})

    found = repo.find(post.id)
    assert found.title == 'Hello'
    assert found.content == 'World'
    assert found.created_at is not None
    assert found.created_at == found.updated_at


def test_ids_are_assigned_in_order(repo):
    first = repo.insert({'title': 'a', 'content': 'a'})
    second = repo.insert({'title': 'b', 'content': 'b'})
    assert second.id > first.id


def test_insert_ignores_fields_outside_allow_list(repo):
    post = repo.insert({'title': 'Hello', 'content': 'World', 'id': 999})
    assert post.id != 999
    assert repo.find(999) is None


def test_list_returns_newest_first(repo):
    first = repo.insert({'title': 'first', 'content': 'a'})
    second = repo.insert({'title': 'second', 'content': 'b'})
    assert [p.id for p in repo.list()] == [second.id, first.id]


def test_find_missing_returns_none(repo):
    assert repo.find(123) is None


def test_update_changes_only_title_content_and_updated_at(repo):
    post = repo.insert({'title': 'Hello', 'content': 'World'})
    post_id, created_at, updated_at = post.id, post.created_at, post.updated_at

    updated = repo.update(post_id, {'title': 'Hello2', 'content': 'World2', 'id': 50})

    assert updated.id == post_id
    assert updated.title == 'Hello2'
    assert updated.content == 'World2'
    assert updated.created_at == created_at
    assert updated.updated_at >= updated_at
    assert repo.find(50) is None


def test_update_missing_returns_none(repo):
    repo.insert({'title': 'Hello', 'content': 'World'})
    assert repo.update(77, {'title': 'x', 'content': 'y'}) is None
    assert [p.title for p in repo.list()] == ['Hello']


def test_delete(repo):
    post = repo.insert({'title': 'Hello', 'content': 'World'})
    assert repo.delete(post.id) is True
    assert repo.find(post.id) is None
    assert repo.count() == 0


def test_delete_missing_returns_false(repo):
    repo.insert({'title': 'Hello', 'content': 'World'})
    assert repo.delete(77) is False
    assert repo.count() == 1


def test_failed_commit_rolls_back_and_raises(repo, monkeypatch):
    def fail():
        raise OperationalError('COMMIT', {}, Exception('database is locked'))

    # repo.session is the scoped proxy; patch the session it hands out
    monkeypatch.setattr(repo.session(), 'commit', fail)
    with pytest.raises(PersistenceError):
        repo.insert({'title': 'Hello', 'content': 'World'})

    monkeypatch.undo()
    assert repo.count() == 0
