from typing import Optional


class PostNotFound(Exception):
    '''Raised when a post id does not match any stored record.'''

    def __init__(self, post_id: Optional[int] = None, message: Optional[str] = None):
        self.post_id = post_id
        if message:
            self.message = message
        elif post_id is not None:
            self.message = f'Post with id {post_id} not found.'
        else:
            self.message = 'Post not found.'

        super().__init__(self.message)


class PostValidationError(Exception):
    '''
    Submitted post fields failed validation.
    - errors: field name -> list of messages
    - old: the submitted values, used to refill the form
    '''

    def __init__(self, errors: dict[str, list[str]], old: dict[str, str]):
        self.errors = errors
        self.old = old
        super().__init__('Invalid post input: ' + ', '.join(sorted(errors)))


class PersistenceError(Exception):
    '''The store was unavailable or rejected a write.'''
