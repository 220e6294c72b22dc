import abc
import dataclasses
from typing import Any
from typing import Dict
from typing import Iterable
from typing import List
from typing import Mapping
from typing import Tuple
from typing import Type
from typing import Union

from .attributes import CleanValue
from .attributes import clean
from .attributes import sort
from .attributes import trim_long_string
from .event import Event
from .logger import get_logger


log = get_logger(__name__)


class Decorator(metaclass=abc.ABCMeta):
    """Transforms the data of every event before it is sampled."""

    @abc.abstractmethod
    def decorate(self, data: Dict[str, CleanValue]) -> Mapping[str, Any]:
        ...


class StaticFieldsDecorator(Decorator):
    """Adds fixed fields to every event. Fields already present are left untouched."""

    def __init__(self, fields: Mapping[str, Any]) -> None:
        self.fields = clean(fields)

    def __repr__(self):
        return "{}(fields={!r})".format(self.__class__.__name__, dict(self.fields))

    def decorate(self, data: Dict[str, CleanValue]) -> Mapping[str, Any]:
        return dict(sort(list(data.items()) + self.fields))


DECORATORS: Dict[str, Type[Decorator]] = {
    "static_fields": StaticFieldsDecorator,
}


def _apply(decorator: Decorator, event: Event) -> Event:
    try:
        data = decorator.decorate(dict(event.data))
    except Exception:
        log.warning("Decorator %r failed, keeping the event unchanged", decorator, exc_info=True)
        return event
    if not isinstance(data, Mapping):
        log.warning("Decorator %r returned %r, expected a mapping. Keeping the event unchanged", decorator, data)
        return event
    # Decorators may add anything, clean and trim it again
    return dataclasses.replace(event, data=dict(trim_long_string(key, value) for key, value in clean(data)))


def decorate(events: Iterable[Event], decorators: Iterable[Decorator]) -> List[Event]:
    result = list(events)
    for decorator in decorators:
        result = [_apply(decorator, event) for event in result]
    return result


def resolve_decorator(spec: Union[Decorator, str, Tuple[str, Mapping[str, Any]]]) -> Decorator:
    """Return the decorator described by ``spec``: an instance, a registered name or a ``(name, options)`` pair."""
    if isinstance(spec, Decorator):
        return spec
    options: Mapping[str, Any] = {}
    if isinstance(spec, str):
        name = spec
    else:
        name, options = spec
    try:
        decorator_class = DECORATORS[name]
    except KeyError:
        raise ValueError(
            "Unknown decorator: '%s'. The available decorators are: %s" % (name, ", ".join(sorted(DECORATORS)))
        )
    return decorator_class(**options)
