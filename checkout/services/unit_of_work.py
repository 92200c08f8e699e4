# checkout/services/unit_of_work.py
from typing import Callable, TypeVar

from sqlalchemy.orm import Session

from checkout.data.database import unit_of_work
from checkout.domain.errors import Rejection, RejectionError, Reason, TransientConflict
from checkout.utils.retry import transient_retry
from checkout.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def execute(db: Session, work: Callable[[], T], attempts: int = 1) -> T | Rejection:
    """
    Run `work` in one transaction and turn business rejections into values.

    With attempts > 1 the whole unit is replayed on TransientConflict only;
    a RejectionError rolls back and is returned, anything else propagates.
    """

    @transient_retry(attempts)
    def attempt():
        with unit_of_work(db):
            return work()

    try:
        return attempt()
    except RejectionError as e:
        logger.info(f"Rejected: {e.rejection.reason.value} {e.rejection.detail}")
        return e.rejection
    except TransientConflict as e:
        logger.error(f"Giving up after {attempts} attempt(s) on lock conflict: {e}")
        return Rejection(Reason.TRANSIENT_CONFLICT, "Could not acquire locks, please retry")
