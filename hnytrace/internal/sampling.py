"""Samplers decide the sample rate of each event.

A sampler is called once per event and answers with one of:

- ``None`` or the event itself: the event is kept unchanged;
- a positive ``int``: the new sample rate of the event;
- another :class:`Event`: it replaces the event.

Any other answer, or an exception, is logged and the event is kept unchanged.
Events are then kept or dropped consistently per trace with :func:`is_sampled`.
"""
import abc
import dataclasses
from typing import Any
from typing import Dict
from typing import Iterable
from typing import List
from typing import Mapping
from typing import Optional
from typing import Tuple
from typing import Type
from typing import Union

from hnytrace.constants import SAMPLING_HASH_MODULO
from hnytrace.constants import SAMPLING_KNUTH_FACTOR

from .event import Event
from .logger import get_logger


log = get_logger(__name__)


class Sampler(metaclass=abc.ABCMeta):
    @abc.abstractmethod
    def sample(self, event: Event) -> Union[None, int, Event]:
        ...


class FixedSampler(Sampler):
    """Sample every event at the same ``rate``.

    Events that already carry a sample rate are left alone unless ``all`` is set.
    """

    def __init__(self, rate: int, all: bool = False) -> None:
        if isinstance(rate, bool) or not isinstance(rate, int) or rate < 1:
            raise ValueError("sample rate must be a positive integer, got %r" % (rate,))
        self.rate = rate
        self.all = all

    def __repr__(self):
        return "{}(rate={}, all={})".format(self.__class__.__name__, self.rate, self.all)

    def sample(self, event: Event) -> Union[None, int, Event]:
        if self.all or event.samplerate is None:
            return self.rate
        return event


SAMPLERS: Dict[str, Type[Sampler]] = {
    "fixed": FixedSampler,
}

SamplerSpec = Union[Sampler, str, Tuple[str, Mapping[str, Any]]]


def resolve_sampler(spec: SamplerSpec) -> Sampler:
    """Return the sampler described by ``spec``: an instance, a registered name or a ``(name, options)`` pair."""
    if isinstance(spec, Sampler):
        return spec
    options: Mapping[str, Any] = {}
    if isinstance(spec, str):
        name = spec
    else:
        name, options = spec
    try:
        sampler_class = SAMPLERS[name]
    except KeyError:
        raise ValueError("Unknown sampler: '%s'. The available samplers are: %s" % (name, ", ".join(sorted(SAMPLERS))))
    return sampler_class(**options)


def _apply(sampler: Sampler, event: Event) -> Event:
    try:
        result = sampler.sample(event)
    except Exception:
        log.warning("Sampler %r failed, keeping the event unchanged", sampler, exc_info=True)
        return event

    if result is None or result is event:
        return event
    if isinstance(result, int) and not isinstance(result, bool) and result > 0:
        return dataclasses.replace(event, samplerate=result)
    if isinstance(result, Event):
        return result
    log.warning(
        "Sampler %r returned %r, expected None, a positive integer or an event. Keeping the event unchanged",
        sampler,
        result,
    )
    return event


def sample(events: Iterable[Event], samplers: Iterable[Sampler]) -> List[Event]:
    """Apply ``samplers`` in order, each one to the events produced by the previous one."""
    result = list(events)
    for sampler in samplers:
        result = [_apply(sampler, event) for event in result]
    return result


def is_sampled(event: Event) -> bool:
    """Whether ``event`` is kept, deciding the same way for every event of a trace."""
    rate: Optional[int] = event.samplerate
    if rate is None or rate <= 1 or event.trace_id is None:
        return True
    # hash < modulo / rate, without floats
    return ((event.trace_id * SAMPLING_KNUTH_FACTOR) % SAMPLING_HASH_MODULO) * rate < SAMPLING_HASH_MODULO
