"""Permission resolution for virtual paths.

Permissions are computed for every access from the store, the rule
table and the defaults. They are never cached.
"""

import re
from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass
from typing import Final, final

from server.apps.elfinder.path import VirtualPath

# Permissions a rule may override
PERMISSION_NAMES: Final = ('read', 'write', 'locked', 'hidden')


@final
@dataclass(frozen=True, slots=True)
class PermissionSet:
    """Flags sent with every node descriptor."""

    read: bool
    write: bool
    locked: bool
    hidden: bool

    def as_dict(self) -> dict[str, bool]:
        """Flags as a mapping, merged into descriptors."""
        return asdict(self)


@final
@dataclass(frozen=True, slots=True)
class PermissionRule:
    """Overrides applied to paths matching a pattern.

    A string pattern matches the absolute path exactly, a compiled
    regular expression is searched in it.
    """

    pattern: str | re.Pattern[str]
    overrides: Mapping[str, bool]

    def matches(self, absolute_path: str) -> bool:
        """Check if the rule applies to an absolute path."""
        if isinstance(self.pattern, str):
            return self.pattern == absolute_path
        return self.pattern.search(absolute_path) is not None


@final
class PermissionResolver:
    """Computes the permission set of a path.

    ``read`` and ``write`` hold only if no matching rule disables them.
    ``hidden`` holds as soon as one matching rule enables it.

    ``locked`` holds for the root when no matching rule disables it and
    the default locks it. Departing from that root-only rule, a matching
    rule enabling ``locked`` locks any other path as well.
    """

    def __init__(
        self,
        rules: Iterable[PermissionRule],
        defaults: PermissionSet,
    ) -> None:
        """Initialize resolver.

        Args:
            rules: Rule table in priority-free order.
            defaults: Default permissions, combined with every result.
        """
        self._rules = tuple(rules)
        self._defaults = defaults

    def permissions_for(self, path: VirtualPath) -> PermissionSet:
        """Compute the permission set of a path.

        Args:
            path: Path to compute permissions for.

        Returns:
            Freshly computed PermissionSet.
        """
        matching = [
            rule.overrides for rule in self._rules
            if rule.matches(path.absolute)
        ]
        root_locked = (
            path.is_root
            and _none_disable(matching, 'locked')
            and self._defaults.locked
        )
        return PermissionSet(
            read=(
                path.is_readable()
                and _none_disable(matching, 'read')
                and self._defaults.read
            ),
            write=(
                path.is_writable()
                and _none_disable(matching, 'write')
                and self._defaults.write
            ),
            locked=root_locked or _any_enable(matching, 'locked'),
            hidden=_any_enable(matching, 'hidden') or self._defaults.hidden,
        )


def _none_disable(matching: list[Mapping[str, bool]], name: str) -> bool:
    return not any(overrides.get(name) is False for overrides in matching)


def _any_enable(matching: list[Mapping[str, bool]], name: str) -> bool:
    return any(overrides.get(name) is True for overrides in matching)
