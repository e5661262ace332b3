# tiktool/services/__init__.py
from contextlib import contextmanager

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .. import db
from ..errors import ConflictError, UpstreamError


@contextmanager
def unit_of_work(label: str):
    """
    Commit everything done inside the block, or nothing.

    Store failures roll the session back and surface as UpstreamError so
    callers never see half-applied points/streak/progress state.
    """
    try:
        yield db.session
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        current_app.logger.info(f"[{label}] unique conflict, rolled back: {e.orig}")
        raise ConflictError(f"{label} conflicted with a concurrent request, please retry") from e
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception(f"[{label}] rolled back: {e}")
        raise UpstreamError(f"{label} failed, please retry") from e
    except Exception:
        db.session.rollback()
        raise


def run_in_unit_of_work(label: str, fn, *args, **kwargs):
    """
    Run ``fn`` in a unit of work, retrying once on a unique conflict.

    A conflict means a concurrent request committed the same row first. The
    retry starts from a clean session, so ``fn``'s own duplicate checks see
    that row and answer ``already_done`` instead of writing again.
    """
    try:
        with unit_of_work(label):
            return fn(*args, **kwargs)
    except ConflictError:
        current_app.logger.info(f"[{label}] retrying after concurrent write")

    with unit_of_work(label):
        return fn(*args, **kwargs)
