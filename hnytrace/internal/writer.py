import enum
import time
from typing import Any
from typing import Dict
from typing import Iterable
from typing import Optional
from urllib.parse import quote

from hnytrace.constants import BATCH_PATH
from hnytrace.constants import TEAM_HEADER
from hnytrace.constants import USER_AGENT_PRODUCT
from hnytrace.version import get_version

from .codec import JSONCodec
from .encoding import EventBatch
from .http import HTTPClient
from .http import Response
from .logger import get_logger


log = get_logger(__name__)


class ExportOutcome(str, enum.Enum):
    OK = "ok"
    FAILED_RETRYABLE = "failed_retryable"
    FAILED_NOT_RETRYABLE = "failed_not_retryable"


def _human_size(nbytes):
    """Return a human-readable size."""
    i = 0
    suffixes = ["B", "KB", "MB", "GB", "TB"]
    while nbytes >= 1000 and i < len(suffixes) - 1:
        nbytes /= 1000.0
        i += 1
    f = ("%.2f" % nbytes).rstrip("0").rstrip(".")
    return "%s%s" % (f, suffixes[i])


def reduce_outcomes(outcomes: Iterable[ExportOutcome]) -> ExportOutcome:
    """The first failure in batch order, or ``OK`` when every batch was accepted."""
    for outcome in outcomes:
        if outcome is not ExportOutcome.OK:
            return outcome
    return ExportOutcome.OK


class HoneycombWriter(object):
    """Sends batches of encoded events to the batch endpoint of a dataset, one request per batch.

    Failures are not retried, they are reported with the outcome of :meth:`send`.
    """

    HTTP_METHOD = "POST"

    def __init__(
        self,
        api_endpoint: str,
        dataset: str,
        write_key: Optional[str],
        client: HTTPClient,
        codec: JSONCodec,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.intake_url = "%s%s%s" % (api_endpoint.rstrip("/"), BATCH_PATH, quote(dataset, safe=""))
        self._client = client
        self._codec = codec
        self._headers = {
            "Content-Type": codec.content_type,
            "User-Agent": "%s/%s" % (USER_AGENT_PRODUCT, get_version()),
        }
        if headers:
            self._headers.update(headers)
        if write_key:
            self._headers[TEAM_HEADER] = write_key

    def __repr__(self):
        return "{}(intake_url={!r}, client={!r})".format(self.__class__.__name__, self.intake_url, self._client)

    @property
    def client(self) -> HTTPClient:
        return self._client

    def send(self, batch: EventBatch) -> ExportOutcome:
        payload = batch.encode()
        start = time.monotonic()
        try:
            response = self._client.request(self.HTTP_METHOD, self.intake_url, dict(self._headers), payload)
        except Exception as e:
            log.warning(
                "failed to send %d events to %s: %s",
                len(batch),
                self.intake_url,
                e,
                extra={"product": "exporter", "more_info": " (%s)" % type(e).__name__},
            )
            return ExportOutcome.FAILED_RETRYABLE
        log.debug(
            "sent %s in %.5fs to %s, got %s %s",
            _human_size(len(payload)),
            time.monotonic() - start,
            self.intake_url,
            response.status,
            response.reason,
        )
        return self._classify(response, len(batch))

    def _classify(self, response: Response, count: int) -> ExportOutcome:
        status = response.status
        if status == 204:
            return ExportOutcome.OK
        if status == 200:
            return self._classify_items(response)

        if status == 401:
            outcome = ExportOutcome.FAILED_NOT_RETRYABLE
        elif status is not None and status >= 500:
            outcome = ExportOutcome.FAILED_RETRYABLE
        else:
            outcome = ExportOutcome.FAILED_NOT_RETRYABLE
        log.warning(
            "failed to send %d events to %s: HTTP error status %s, reason %s",
            count,
            self.intake_url,
            status,
            response.reason,
            extra={"product": "exporter", "more_info": " (%s)" % outcome.value},
        )
        return outcome

    def _classify_items(self, response: Response) -> ExportOutcome:
        """Look at the per-event statuses of a 200 reply, the first event not accepted decides."""
        try:
            items: Any = self._codec.decode(response.body or b"")
        except Exception:
            log.warning("could not decode the reply of %s", self.intake_url, exc_info=True)
            return ExportOutcome.FAILED_RETRYABLE
        if not isinstance(items, list):
            log.warning("unexpected reply from %s: %r", self.intake_url, items)
            return ExportOutcome.FAILED_RETRYABLE

        for index, item in enumerate(items):
            status = item.get("status") if isinstance(item, dict) else None
            if status == 202:
                continue
            outcome = ExportOutcome.FAILED_NOT_RETRYABLE if status == 400 else ExportOutcome.FAILED_RETRYABLE
            error = item.get("error") if isinstance(item, dict) else None
            log.warning(
                "event %d of the batch was rejected by %s with status %s: %s",
                index,
                self.intake_url,
                status,
                error,
                extra={"product": "exporter", "more_info": " (%s)" % outcome.value},
            )
            return outcome
        return ExportOutcome.OK
