# checkout/utils/retry.py
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type
import redis

from checkout.domain.errors import TransientConflict
from checkout.utils.settings import ORDER_RETRY_ATTEMPTS


def redis_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(redis.RedisError),
    )


def transient_retry(attempts: int = ORDER_RETRY_ATTEMPTS):
    #reruns the whole unit of work, only for deadlock / lock timeout
    return retry(
        reraise=True,
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=0.05, min=0.05, max=0.5),
        retry=retry_if_exception_type(TransientConflict),
    )
