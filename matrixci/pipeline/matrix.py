# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Build matrix expansion.

Turns a validated PipelineConfig into the ordered list of MatrixEntry objects
the runner executes. The rules:

  1. Top-level `arch` and `env.jobs` are matrix dimensions. Their cross
     product is generated when either one is declared, or when there is no
     `matrix.include` at all (a file with no matrix still builds once, on
     amd64).
  2. `matrix.include` entries are appended after the expansion, in the order
     they appear in the file.
  3. `matrix.exclude` removes generated entries.
  4. `env.global` is merged under every entry's own variables; the entry's
     own value wins on conflict. Values are kept as written; `$VAR`
     references are expanded by the runner, against the host environment.
  5. Entries are numbered from 1 and flagged when an `allow_failures`
     matcher matches them.

The output is deterministic: the same file always produces the same entries
in the same order.
"""

import re
import shlex
from collections.abc import Iterable, Sequence

from matrixci.config.schema import EntryMatcher, EnvConfig, EnvValue, PipelineConfig
from matrixci.pipeline.exceptions import MatrixError
from matrixci.pipeline.models import Architecture, MatrixEntry

_ENV_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_VARIABLE_REFERENCE = re.compile(r"\$(?:\{([A-Za-z_][A-Za-z0-9_]*)\}|([A-Za-z_][A-Za-z0-9_]*))")


def _check_name(name: str, source: str) -> None:
    if not _ENV_NAME.match(name):
        raise MatrixError(f"Invalid environment variable name {name!r} in {source!r}")


def _parse_assignments(text: str) -> dict[str, str]:
    """Parse `A=1 B="two words"` the way a shell would split it."""
    try:
        words = shlex.split(text, comments=False, posix=True)
    except ValueError as err:
        raise MatrixError(f"Cannot parse environment {text!r}: {err}") from err

    env: dict[str, str] = {}
    for word in words:
        name, sep, value = word.partition("=")
        if not sep:
            raise MatrixError(
                f"Environment item {word!r} in {text!r} is not a NAME=value assignment"
            )
        _check_name(name, text)
        env[name] = value
    return env


def parse_env(value: EnvValue | None) -> dict[str, str]:
    """
    Normalize any of the accepted env shapes into a flat variable mapping.

    Accepts "A=1 B=2", a list of such strings (later items win), or a mapping.
    None gives an empty mapping.

    Raises:
        MatrixError: On unparseable strings or invalid variable names.
    """
    if value is None:
        return {}
    if isinstance(value, dict):
        for name in value:
            _check_name(name, str(value))
        return dict(value)
    if isinstance(value, str):
        return _parse_assignments(value)

    env: dict[str, str] = {}
    for item in value:
        env.update(parse_env(item))
    return env


def expand_variables(value: str, env: dict[str, str]) -> str:
    """
    Substitute `$NAME` and `${NAME}` from env, the way an `export` would.

    Unset names expand to an empty string.
    """
    return _VARIABLE_REFERENCE.sub(
        lambda match: env.get(match.group(1) or match.group(2), ""),
        value,
    )


def _global_env(config: PipelineConfig) -> dict[str, str]:
    if isinstance(config.env, EnvConfig):
        env: dict[str, str] = {}
        for item in config.env.global_env:
            env.update(parse_env(item))
        return env
    return {}


def _env_dimension(config: PipelineConfig) -> list[dict[str, str]]:
    """One env mapping per job declared at the top level; empty if none."""
    if config.env is None:
        return []
    if isinstance(config.env, str):
        return [parse_env(config.env)]
    if isinstance(config.env, EnvConfig):
        return [parse_env(item) for item in config.env.job_values]
    return [parse_env(item) for item in config.env]


def matches(matcher: EntryMatcher, architecture: Architecture, environment: dict[str, str]) -> bool:
    """Whether an exclude / allow_failures matcher selects the given leg."""
    if matcher.arch is not None and matcher.arch != architecture:
        return False
    if matcher.env is not None:
        wanted = parse_env(matcher.env)
        if any(environment.get(name) != value for name, value in wanted.items()):
            return False
    return True


def build_matrix(config: PipelineConfig) -> list[MatrixEntry]:
    """
    Expand a pipeline config into matrix entries.

    Raises:
        MatrixError: If env values can't be parsed or every entry got excluded.
    """
    spec = config.matrix_spec
    global_env = _global_env(config)
    arch_dimension = config.architectures
    env_dimension = _env_dimension(config)

    legs: list[tuple[Architecture, dict[str, str]]] = []

    expand = bool(arch_dimension or env_dimension or not spec.include)
    if expand:
        for architecture in arch_dimension or [Architecture.AMD64]:
            for job_env in env_dimension or [{}]:
                environment = {**global_env, **job_env}
                if any(matches(m, architecture, environment) for m in spec.exclude):
                    continue
                legs.append((architecture, environment))

    for include in spec.include:
        legs.append((include.arch, {**global_env, **parse_env(include.env)}))

    if not legs:
        raise MatrixError("The build matrix is empty: every entry was excluded")

    return [
        MatrixEntry(
            index=position,
            architecture=architecture,
            environment=environment,
            allow_failure=any(
                matches(m, architecture, environment) for m in spec.allow_failures
            ),
        )
        for position, (architecture, environment) in enumerate(legs, start=1)
    ]


def select_entries(
    entries: Sequence[MatrixEntry],
    architecture: Architecture | None = None,
    indices: Iterable[int] | None = None,
) -> list[MatrixEntry]:
    """
    Narrow the matrix down for a local run.

    Raises:
        MatrixError: If an index doesn't exist or nothing is left to run.
    """
    selected = list(entries)

    if indices is not None:
        wanted = sorted(set(indices))
        known = {entry.index for entry in selected}
        missing = [i for i in wanted if i not in known]
        if missing:
            raise MatrixError(
                f"No matrix entry with index {', '.join(map(str, missing))} "
                f"(matrix has {len(known)} entries)"
            )
        selected = [entry for entry in selected if entry.index in wanted]

    if architecture is not None:
        selected = [entry for entry in selected if entry.architecture == architecture]

    if not selected:
        raise MatrixError("No matrix entries left after filtering")

    return selected
