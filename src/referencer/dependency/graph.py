"""Kind Dependency Graph - DAG with cycle detection for resolution ordering.

Decides in which order entity kinds are loaded so that every batch query can
see the IDs it is scoped by (host -> item/discovery rule -> host prototype).
"""

from collections import deque
from dataclasses import dataclass, field

import structlog

from ..core.kinds import KIND_DEPENDENCIES, EntityKind
from ..utils.exceptions import CyclicDependencyError

logger = structlog.get_logger(__name__)


@dataclass
class KindNode:
    """
    Node in the kind graph.

    Attributes:
        kind: Entity kind this node represents
        dependencies: Kinds that must be loaded before this one
        dependents: Kinds that need this one loaded first
    """

    kind: EntityKind
    dependencies: set[EntityKind] = field(default_factory=set)
    dependents: set[EntityKind] = field(default_factory=set)

    def __hash__(self) -> int:
        return hash(self.kind)


class KindGraph:
    """
    Directed Acyclic Graph of entity kind prerequisites.

    Features:
    - Built from a dependency table (KIND_DEPENDENCIES by default)
    - Transitive closure of the kinds a caller asks for
    - Topological sorting for load order
    - DOT export for documentation
    """

    def __init__(
        self, dependencies: dict[EntityKind, tuple[EntityKind, ...]] | None = None
    ) -> None:
        self.nodes: dict[EntityKind, KindNode] = {}

        for kind, prerequisites in (dependencies or KIND_DEPENDENCIES).items():
            self.add_kind(kind)
            for prerequisite in prerequisites:
                self.add_dependency(kind, prerequisite)

    def add_kind(self, kind: EntityKind) -> KindNode:
        """Add a kind node if it is not present yet."""
        if kind not in self.nodes:
            self.nodes[kind] = KindNode(kind=kind)
        return self.nodes[kind]

    def add_dependency(self, kind: EntityKind, depends_on: EntityKind) -> None:
        """
        Record that ``kind`` can only be loaded after ``depends_on``.

        Args:
            kind: Dependent kind
            depends_on: Prerequisite kind
        """
        node = self.add_kind(kind)
        prerequisite = self.add_kind(depends_on)
        node.dependencies.add(depends_on)
        prerequisite.dependents.add(kind)

    def closure(self, kinds: list[EntityKind]) -> set[EntityKind]:
        """Return the given kinds plus all of their transitive prerequisites."""
        seen: set[EntityKind] = set()
        stack = list(kinds)

        while stack:
            kind = stack.pop()
            if kind in seen:
                continue
            seen.add(kind)
            stack.extend(self.add_kind(kind).dependencies)

        return seen

    def topological_sort(self, kinds: list[EntityKind] | None = None) -> list[EntityKind]:
        """
        Order kinds so that prerequisites come first, using Kahn's algorithm.

        Ties are broken by enum declaration order, which keeps the result
        stable between runs.

        Args:
            kinds: Kinds the caller needs; prerequisites are added. Defaults
                to every kind in the graph.

        Returns:
            Kinds in load order

        Raises:
            CyclicDependencyError: If a cycle is detected
        """
        selected = self.closure(kinds) if kinds is not None else set(self.nodes)
        declared = list(EntityKind)

        in_degree: dict[EntityKind, int] = {
            kind: len(self.nodes[kind].dependencies & selected) for kind in selected
        }
        queue = deque(
            sorted(
                (kind for kind, degree in in_degree.items() if degree == 0),
                key=declared.index,
            )
        )

        ordered: list[EntityKind] = []

        while queue:
            kind = queue.popleft()
            ordered.append(kind)

            ready = []
            for dependent in self.nodes[kind].dependents:
                if dependent not in in_degree:
                    continue
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    ready.append(dependent)
            queue.extend(sorted(ready, key=declared.index))

        if len(ordered) != len(selected):
            unprocessed = sorted(kind.value for kind in selected - set(ordered))
            raise CyclicDependencyError(
                f"Cyclic dependency detected involving kinds: {unprocessed}",
                cycles=[unprocessed],
            )

        logger.debug("Kind order computed", order=[kind.value for kind in ordered])
        return ordered

    def to_dot(self) -> str:
        """
        Generate DOT format representation of the kind graph.

        Returns:
            String containing the Graphviz DOT definition
        """
        lines = ["digraph KindGraph {"]
        lines.append("    rankdir=LR;")
        lines.append("    node [shape=box];")

        for kind in self.topological_sort():
            lines.append(f'    "{kind.value}";')
            for dependency in sorted(self.nodes[kind].dependencies, key=lambda k: k.value):
                lines.append(f'    "{dependency.value}" -> "{kind.value}";')

        lines.append("}")
        return "\n".join(lines)


def resolution_order(*kinds: EntityKind) -> list[EntityKind]:
    """Load order for the given kinds and their prerequisites."""
    return KindGraph().topological_sort(list(kinds))
