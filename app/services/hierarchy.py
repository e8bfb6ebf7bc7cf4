"""In-memory hierarchy index built from a snapshot of nodes."""

from collections.abc import Iterable, Iterator

from app.core.exceptions import InvalidPathError
from app.core.hierarchy import OrgPath
from app.schemas.access_control import HierarchyNode, NodeType


class HierarchyIndex:
    """
    Answers ancestor/descendant questions for a fixed set of nodes.

    Non-group nodes must carry a path equal to their parent's path plus one
    segment. Groups sit outside the tree and have no path.
    """

    def __init__(self, nodes: Iterable[HierarchyNode] = ()) -> None:
        self._nodes: dict[str, HierarchyNode] = {}
        self._by_path: dict[OrgPath, str] = {}

        for node in nodes:
            if node.id in self._nodes:
                raise InvalidPathError(f"Duplicate node id '{node.id}'")
            self._nodes[node.id] = node
            if node.path is not None:
                if node.path in self._by_path:
                    raise InvalidPathError(
                        f"Nodes '{self._by_path[node.path]}' and '{node.id}' share path '{node.path}'"
                    )
                self._by_path[node.path] = node.id

        for node in self._nodes.values():
            self._check_parent(node)

    def _check_parent(self, node: HierarchyNode) -> None:
        if node.parent_id is None:
            # A node without a parent is a root
            if node.path is not None and node.path.depth != 1:
                raise InvalidPathError(
                    f"Node '{node.id}' has no parent but a multi-segment path '{node.path}'"
                )
            return
        parent = self._nodes.get(node.parent_id)
        if parent is None:
            # Parent outside the snapshot; nothing to compare against
            return
        if parent.path is None or node.path is None or node.path.parent != parent.path:
            raise InvalidPathError(
                f"Path '{node.path}' of node '{node.id}' does not extend "
                f"parent '{parent.id}' path '{parent.path}'"
            )

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[HierarchyNode]:
        return iter(self._nodes.values())

    def get(self, node_id: str) -> HierarchyNode | None:
        return self._nodes.get(node_id)

    def path_of(self, node_id: str) -> OrgPath | None:
        node = self._nodes.get(node_id)
        return node.path if node else None

    def is_group(self, node_id: str) -> bool:
        node = self._nodes.get(node_id)
        return node is not None and node.node_type == NodeType.GROUP

    def ancestors_of(self, node_id: str) -> set[str]:
        """Ids of the node and every indexed node above it."""
        path = self.path_of(node_id)
        if path is None:
            return {node_id}

        result = {node_id}
        ancestor = path.parent
        while ancestor is not None:
            ancestor_id = self._by_path.get(ancestor)
            if ancestor_id is not None:
                result.add(ancestor_id)
            ancestor = ancestor.parent
        return result

    def descendants_of(self, node_id: str) -> set[str]:
        """Ids of the node and every indexed node below it."""
        path = self.path_of(node_id)
        if path is None:
            return {node_id}

        return {node_id} | {
            other_id
            for other_path, other_id in self._by_path.items()
            if other_path.is_descendant_or_equal(path)
        }
