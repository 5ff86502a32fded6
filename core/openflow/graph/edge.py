"""
Edge Protocol - How nodes connect in a graph.

Edges define a source and a target node: the output of the source becomes
the input of the target. Multiple edges may share a source (fan-out) or a
target (fan-in).

The editor may transiently hold edges that point at nodes which no longer
exist. Such edges are inert: every read on the graph ignores them instead
of rejecting the graph.

GraphSpec is the graph store. Mutations (add/remove node/edge) belong to
the editor layer; the executor only reads.
"""

from enum import StrEnum

from pydantic import BaseModel, Field, model_validator

from openflow.graph.node import NodeSpec


class SourceFallback(StrEnum):
    """What to do when every node has an incoming edge (a pure cycle)."""

    FIRST_NODE = "first_node"  # Start from the insertion-first node
    NONE = "none"  # Start nothing; the run completes immediately


class EdgeSpec(BaseModel):
    """
    Specification for an edge between nodes.

    Example:
        EdgeSpec(id="e1", source="1", target="2")
    """

    id: str
    source: str = Field(description="Source node ID")
    target: str = Field(description="Target node ID")

    model_config = {"extra": "allow", "frozen": True}


class GraphSpec(BaseModel):
    """
    Complete workflow graph: nodes plus directed edges.

    Node declaration order and edge declaration order are significant:
    sources are reported in node order and fan-out follows edge order.

    Example:
        graph = GraphSpec(
            id="onboarding",
            nodes=[
                NodeSpec(id="1", type="webhook"),
                NodeSpec(id="2", type="ai"),
                NodeSpec(id="3", type="discord"),
            ],
            edges=[
                EdgeSpec(id="e1", source="1", target="2"),
                EdgeSpec(id="e2", source="2", target="3"),
            ],
        )
    """

    id: str = "workflow"
    name: str = "Untitled Workflow"
    nodes: list[NodeSpec] = Field(default_factory=list)
    edges: list[EdgeSpec] = Field(default_factory=list)

    model_config = {"extra": "allow"}

    @model_validator(mode="after")
    def _check_unique_node_ids(self) -> "GraphSpec":
        seen: set[str] = set()
        for node in self.nodes:
            if node.id in seen:
                raise ValueError(f"Duplicate node id: {node.id}")
            seen.add(node.id)
        return self

    # === READS ===

    def get_node(self, node_id: str) -> NodeSpec | None:
        """Get a node by ID."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def node_ids(self) -> list[str]:
        return [node.id for node in self.nodes]

    def is_live(self, edge: EdgeSpec) -> bool:
        """True if both ends of the edge exist."""
        ids = set(self.node_ids())
        return edge.source in ids and edge.target in ids

    def outgoing_edges(self, node_id: str) -> list[EdgeSpec]:
        """Live edges leaving a node, in declaration order."""
        ids = set(self.node_ids())
        return [
            edge
            for edge in self.edges
            if edge.source == node_id and edge.source in ids and edge.target in ids
        ]

    def incoming_edges(self, node_id: str) -> list[EdgeSpec]:
        """Live edges entering a node, in declaration order."""
        ids = set(self.node_ids())
        return [
            edge
            for edge in self.edges
            if edge.target == node_id and edge.source in ids and edge.target in ids
        ]

    def sources(self, fallback: SourceFallback = SourceFallback.FIRST_NODE) -> list[str]:
        """
        Node IDs with no incoming edge, in node declaration order.

        If the graph is non-empty but every node has an incoming edge, the
        fallback policy decides: FIRST_NODE returns the insertion-first node
        so a run can still start, NONE returns nothing.
        """
        ids = set(self.node_ids())
        targets = {e.target for e in self.edges if e.source in ids and e.target in ids}
        found = [node.id for node in self.nodes if node.id not in targets]

        if not found and self.nodes and fallback == SourceFallback.FIRST_NODE:
            return [self.nodes[0].id]
        return found

    def validate_graph(self) -> list[str]:
        """
        Report structural oddities as warnings.

        Nothing here prevents execution: dangling edges are inert and
        cycles are bounded by the executor's processed set.
        """
        warnings: list[str] = []
        ids = set(self.node_ids())

        seen_edges: set[str] = set()
        for edge in self.edges:
            if edge.id in seen_edges:
                warnings.append(f"Duplicate edge id: {edge.id}")
            seen_edges.add(edge.id)
            if edge.source not in ids:
                warnings.append(f"Edge {edge.id} has missing source node '{edge.source}'")
            if edge.target not in ids:
                warnings.append(f"Edge {edge.id} has missing target node '{edge.target}'")

        if self.nodes and not self.sources(fallback=SourceFallback.NONE):
            warnings.append(
                f"Every node has an incoming edge; execution starts from '{self.nodes[0].id}'"
            )

        return warnings

    # === EDITOR MUTATIONS ===

    def add_node(self, node: NodeSpec) -> None:
        if self.get_node(node.id) is not None:
            raise ValueError(f"Duplicate node id: {node.id}")
        self.nodes.append(node)

    def remove_node(self, node_id: str) -> bool:
        """Remove a node and every edge touching it."""
        before = len(self.nodes)
        self.nodes = [n for n in self.nodes if n.id != node_id]
        if len(self.nodes) == before:
            return False
        self.edges = [e for e in self.edges if e.source != node_id and e.target != node_id]
        return True

    def add_edge(self, edge: EdgeSpec) -> None:
        self.edges.append(edge)

    def remove_edge(self, edge_id: str) -> bool:
        before = len(self.edges)
        self.edges = [e for e in self.edges if e.id != edge_id]
        return len(self.edges) != before
