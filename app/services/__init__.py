from contextlib import contextmanager

from app.errors import NotFoundError
from app.extensions import db


@contextmanager
def atomic():
    """Commit the session on success, roll everything back on any error."""
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def get_or_404(model, object_id, message=None):
    instance = db.session.get(model, object_id)
    if instance is None:
        raise NotFoundError(message or f'{model.__name__} not found')
    return instance
