"""Tool-server definitions parsed from the ``servers`` config section."""

import os
import re
import shutil
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from ..errors import ConfigError, ServerConnectionError

_ENV_REF = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")

DEFAULT_TIMEOUT = 10.0


@dataclass(frozen=True)
class ServerDefinition:
    """How to launch one tool server.

    ``env`` values may reference the parent environment as ``${VAR}``; every
    referenced variable, plus every name in ``required_env``, must be set
    when the connection initializes.
    """

    name: str
    command: str
    args: tuple[str, ...] = ()
    env: Mapping[str, str] = field(default_factory=dict)
    required_env: tuple[str, ...] = ()
    timeout: float = DEFAULT_TIMEOUT
    cwd: Optional[str] = None
    enabled: bool = True

    @property
    def argv(self) -> list[str]:
        executable = shutil.which(self.command) or self.command
        return [executable, *self.args]

    def referenced_env(self) -> tuple[str, ...]:
        """All environment variable names this server needs."""
        names = list(self.required_env)
        for value in self.env.values():
            for match in _ENV_REF.finditer(str(value)):
                if match.group(1) not in names:
                    names.append(match.group(1))
        return tuple(names)

    def resolve_env(self, environ: Optional[Mapping[str, str]] = None) -> dict[str, str]:
        """Build the child environment.

        Raises:
            ServerConnectionError: a required variable is unset or empty.
        """
        environ = os.environ if environ is None else environ
        missing = [name for name in self.referenced_env() if not environ.get(name)]
        if missing:
            raise ServerConnectionError(
                f"Missing required environment variable(s): {', '.join(missing)}",
                origin=self.name,
            )

        resolved = dict(environ)
        for key, value in self.env.items():
            resolved[key] = _ENV_REF.sub(lambda m: environ[m.group(1)], str(value))
        return resolved


def load_servers_from_config(data: Mapping[str, Any]) -> tuple[ServerDefinition, ...]:
    """Parse the ``servers`` mapping into ServerDefinitions, in config order.

    Each entry is keyed by server name::

        github:
          command: npx
          args: ["-y", "@modelcontextprotocol/server-github"]
          env:
            GITHUB_PERSONAL_ACCESS_TOKEN: ${GITHUB_PERSONAL_ACCESS_TOKEN}
          timeout: 10

    Disabled entries are dropped. Malformed entries raise ConfigError.
    """
    servers = []

    for name, entry in (data or {}).items():
        if not isinstance(entry, dict):
            raise ConfigError(f"Server '{name}' must be a mapping")

        command = entry.get("command")
        if not command:
            raise ConfigError(f"Server '{name}' has no command")

        args = entry.get("args", [])
        if isinstance(args, str):
            args = args.split()
        env = entry.get("env") or {}
        if not isinstance(env, dict):
            raise ConfigError(f"Server '{name}': env must be a mapping")

        try:
            timeout = float(entry.get("timeout", DEFAULT_TIMEOUT))
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Server '{name}': invalid timeout") from e

        definition = ServerDefinition(
            name=str(name),
            command=str(command),
            args=tuple(str(a) for a in args),
            env={str(k): str(v) for k, v in env.items()},
            required_env=tuple(str(v) for v in entry.get("required_env", [])),
            timeout=timeout,
            cwd=entry.get("cwd"),
            enabled=bool(entry.get("enabled", True)),
        )
        if definition.enabled:
            servers.append(definition)

    return tuple(servers)
