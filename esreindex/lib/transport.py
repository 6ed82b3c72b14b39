import json
import logging
import time

from elasticsearch.exceptions import NotFoundError, RequestError, SerializationError, TransportError
from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    stop_never,
    wait_random_exponential,
)

from esreindex.config import RetryPolicy
from esreindex.exceptions import RequestRejected, RetriesExhausted


DEFAULT_RETRY = RetryPolicy(max_attempts=30, base_delay=0.5, max_delay=30.0)

RETRYABLE = (TransportError, SerializationError)


def _describe(info):
    if isinstance(info, (dict, list)):
        return json.dumps(info, indent=2)
    return str(info)


class Transport(object):
    """
    Executes one request against a single cluster endpoint with error classification
        not found   -> None, the resource does not exist (yet)
        bad request -> RequestRejected, never retried
        anything else (connection errors, timeouts, 5xx, garbled payloads) -> retried with jittered
                       exponential backoff until the RetryPolicy gives up with RetriesExhausted
    """

    def __init__(self, base_url, es, retry=DEFAULT_RETRY, logger=None, sleep=time.sleep):
        self.base_url = base_url
        self.es = es
        self.retry = retry
        self.logger = logger or logging.getLogger('esreindex')
        self.sleep = sleep

    def retryer(self, method, path, once=False, level=logging.WARNING):
        """
        :param once: bool, single attempt (no retry)
        :param level: log level of the retry messages
        :return: tenacity.Retrying
        """
        if once:
            stop = stop_after_attempt(1)
        elif self.retry.max_attempts:
            stop = stop_after_attempt(self.retry.max_attempts)
        else:
            stop = stop_never

        def log_retry(retry_state):
            e = retry_state.outcome.exception()
            self.logger.log(level, "Retrying %s %s%s (attempt %d) ERROR: %s - %s", method, self.base_url, path,
                            retry_state.attempt_number, type(e).__name__, e)

        return Retrying(stop=stop,
                        wait=wait_random_exponential(multiplier=self.retry.base_delay, max=self.retry.max_delay),
                        retry=(retry_if_exception_type(RETRYABLE)
                               & retry_if_not_exception_type((NotFoundError, RequestError))),
                        before_sleep=log_retry,
                        sleep=self.sleep)

    def _perform(self, method, path, body, params, headers, level):
        try:
            return self.es.transport.perform_request(method, path, headers=headers, params=params, body=body)
        except NotFoundError:
            return None
        except RequestError as e:
            self.logger.log(level, "%s %s%s :-> ERROR: %s - %s", method, self.base_url, path, type(e).__name__,
                            e.error)
            self.logger.log(level, _describe(e.info))
            raise RequestRejected(method, path, e.status_code, e.info)

    def request(self, method, path, body=None, params=None, headers=None, once=False, quiet=False):
        """
        :param method: str, HTTP method
        :param path: str, path relative to the endpoint (ex. /logs/_settings)
        :param body: dict or str (raw payload, ex. NDJSON bulk)
        :param params: dict, query string
        :param headers: dict, extra HTTP headers
        :param once: bool, give up after the first transient failure
        :param quiet: bool, failures are expected by the caller and logged at debug level
        :return: decoded response body, or None if the resource was not found
        """
        level = logging.DEBUG if quiet else logging.ERROR
        retryer = self.retryer(method, path, once=once, level=logging.DEBUG if quiet else logging.WARNING)
        try:
            return retryer(self._perform, method, path, body, params, headers, level)
        except RetryError as e:
            attempt = e.last_attempt
            self.logger.log(level, "Giving up on %s %s%s after %d attempts", method, self.base_url, path,
                            attempt.attempt_number)
            raise RetriesExhausted(method, path, attempt.attempt_number, attempt.exception())
