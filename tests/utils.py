import contextlib
import os
from typing import Dict
from typing import List
from typing import Optional
from typing import Tuple
import unittest

from hnytrace.internal.http import HTTPClient
from hnytrace.internal.http import Response
from hnytrace.span import Span
from hnytrace.span import SpanEvent


TRACE_ID = 0x5B8EFFF798038103D269B633813FC60C
SPAN_ID = 0xEEE19B7EC3C1B174
START_TIME_NS = 1_600_000_000_123_456_789


@contextlib.contextmanager
def override_env(env, replace_os_env=False):
    """
    Temporarily override ``os.environ`` with provided values::

        >>> with self.override_env(dict(HONEYCOMB_DATASET="test")):
            # Your test
    """
    # Copy the full original environment
    original = dict(os.environ)

    # We allow callers to clear out the environment to prevent leaking variables into the test
    if replace_os_env:
        os.environ.clear()

    for k in list(os.environ.keys()):
        if k.startswith("HONEYCOMB_"):
            del os.environ[k]

    # Update based on the passed in arguments
    os.environ.update(env)
    try:
        yield
    finally:
        # Full clear the environment out and reset back to the original
        os.environ.clear()
        os.environ.update(original)


class BaseTestCase(unittest.TestCase):
    """
    BaseTestCase extends ``unittest.TestCase`` to provide some useful helpers

    Example::

        from tests.utils import BaseTestCase


        class MyTestCase(BaseTestCase):
            def test_case(self):
                with self.override_env(dict(HONEYCOMB_WRITE_KEY="key")):
                    pass
    """

    override_env = staticmethod(override_env)


def make_span(
    name="some-span",
    attributes=None,
    trace_id=TRACE_ID,
    span_id=SPAN_ID,
    parent_span_id=None,
    start_time_ns=START_TIME_NS,
    duration_ns=1_500_000,
    kind="internal",
    events=None,
):
    # type: (...) -> Span
    return Span(
        trace_id=trace_id,
        span_id=span_id,
        name=name,
        start_time_ns=start_time_ns,
        end_time_ns=start_time_ns + duration_ns,
        parent_span_id=parent_span_id,
        kind=kind,
        attributes=attributes if attributes is not None else {},
        events=events or [],
    )


def make_span_event(name="exception", attributes=None, timestamp_ns=START_TIME_NS + 1000):
    # type: (...) -> SpanEvent
    return SpanEvent(name=name, timestamp_ns=timestamp_ns, attributes=attributes or {})


class DummyHTTPClient(HTTPClient):
    """Records requests and answers them with canned responses, the last one being repeated."""

    def __init__(self, *responses):
        # type: (Response) -> None
        self.responses = list(responses) or [Response(status=204, body=b"", reason="No Content")]
        self.requests = []  # type: List[Tuple[str, str, Dict[str, str], bytes]]
        self.closed = False

    def request(self, method, url, headers, body):
        self.requests.append((method, url, headers, body))
        response = self.responses[0]
        if len(self.responses) > 1:
            self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self):
        self.closed = True


def response(status, body=b"", reason=None):
    # type: (int, bytes, Optional[str]) -> Response
    return Response(status=status, body=body, reason=reason)
