"""Construct scopes: where resources are defined and warnings recorded."""

from __future__ import annotations

from dataclasses import dataclass, field

from loguru import logger


@dataclass(slots=True)
class Scope:
    """A node in the tree of provisioned resources.

    Each fleet gets its own scope; monitoring resources added later (target
    groups, listeners) are created under ``fleet.target_scope``. Non-fatal
    advisories are recorded with ``add_warning`` instead of raising.
    """

    id: str
    parent: Scope | None = None
    warnings: list[str] = field(default_factory=list)
    children: dict[str, Scope] = field(default_factory=dict)

    @property
    def path(self) -> str:
        if self.parent is None:
            return self.id
        return f"{self.parent.path}/{self.id}"

    @property
    def resource_name(self) -> str:
        """Path flattened into a name accepted by AWS resource APIs."""
        return self.path.replace("/", "-")

    def child(self, id: str) -> Scope:  # noqa: A002
        if id in self.children:
            raise ValueError(f"There is already a scope named '{id}' in '{self.path}'")
        node = Scope(id=id, parent=self)
        self.children[id] = node
        return node

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)
        logger.bind(component="scope").warning("{path}: {message}", path=self.path, message=message)
