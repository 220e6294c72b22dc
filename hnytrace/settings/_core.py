from collections import ChainMap
from enum import Enum
import os
from typing import Any
from typing import Dict
from typing import Optional

from envier import Env


class ValueSource(str, Enum):
    CODE = "code"
    ENV_VAR = "env_var"
    DEFAULT = "default"
    UNKNOWN = "unknown"


class HNYConfig(Env):
    """Provides support for loading configurations from code and from the environment."""

    def __init__(
        self,
        source: Optional[Dict[str, str]] = None,
        parent: Optional["Env"] = None,
        dynamic: Optional[Dict[str, str]] = None,
    ) -> None:
        if parent is not None and isinstance(parent, HNYConfig):
            self.code_source = parent.code_source
        else:
            self.code_source = dict(source or {})
        self.env_source = os.environ

        # Order of precedence: environment variables < options provided in code
        full_source = ChainMap(self.code_source, self.env_source)

        # Parse the configuration and initialize the values
        super().__init__(source=full_source, parent=parent, dynamic=dynamic)

        self._value_source: Dict[str, ValueSource] = {}

        for name, e in type(self).items(recursive=True):
            if e.private:
                continue

            env_name = e.full_name

            # Get the item value recursively
            env_val = self
            for p in name.split("."):
                env_val = getattr(env_val, p)

            if env_name in self.code_source:
                value_source = ValueSource.CODE
            elif env_name in self.env_source:
                value_source = ValueSource.ENV_VAR
            elif env_val == e.default:
                value_source = ValueSource.DEFAULT
            else:
                value_source = ValueSource.UNKNOWN

            self._value_source[env_name] = value_source

    def value_source(self, env_name: str) -> ValueSource:
        return self._value_source.get(env_name, ValueSource.UNKNOWN)

    @classmethod
    def option_names(cls) -> Dict[str, str]:
        """Map every public option name (dotted for nested configs) to its environment variable."""
        return {name: e.full_name for name, e in cls.items(recursive=True) if not e.private}


def to_source_value(value: Any) -> str:
    """Render a value passed in code the way it would be spelled in the environment."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, dict):
        return ",".join("%s=%s" % (k, v) for k, v in value.items())
    return str(value)
