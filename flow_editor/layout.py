"""
Layout algorithms for flow steps.

Provides:
- Layered: hierarchical top-to-bottom layout driven by transition direction
- Import placement: the fixed staggered position given to imported steps

The layered layout follows the classic Sugiyama pipeline:
1. Break cycles by reversing DFS back edges
2. Rank steps by longest path so every edge points downwards
3. Order steps within each rank by barycenter sweeps
4. Assign coordinates, centering every rank on a shared axis

Layout functions modify steps in-place and return the modified list.
"""

from collections import defaultdict
from typing import TYPE_CHECKING, Iterator

from .analysis import find_start_step
from .models import Position

if TYPE_CHECKING:
    from .models import Step, Transition


# Default layout parameters
DEFAULT_NODE_WIDTH = 250
DEFAULT_NODE_HEIGHT = 150
DEFAULT_NODE_SEP = 100
DEFAULT_RANK_SEP = 100
DEFAULT_SWEEPS = 4

# Import placement
IMPORT_START_X = 100
IMPORT_START_Y = 100
IMPORT_STEP_X = 250
IMPORT_WRAP_X = 800
IMPORT_ROW_SIZE = 3
IMPORT_STEP_Y = 200

LayoutEdge = tuple[str, str]


def import_position(index: int) -> Position:
    """
    Get the position of the `index`-th step of an imported flow.

    Steps are staggered horizontally (wrapping every 800px) and move down
    one row every three steps.
    """
    return Position(
        x=IMPORT_START_X + (index * IMPORT_STEP_X) % IMPORT_WRAP_X,
        y=IMPORT_START_Y + (index // IMPORT_ROW_SIZE) * IMPORT_STEP_Y,
    )


def layout_edges(steps: list["Step"], transitions: list["Transition"]) -> list[LayoutEdge]:
    """
    Select the transitions that take part in ranking.

    Skipped:
    - transitions into the start step, which must stay on the top rank
    - self-loops
    - transitions with an endpoint that names no step
    """
    step_ids = {s.id for s in steps}
    start = find_start_step(steps)
    start_id = start.id if start else None

    edges: list[LayoutEdge] = []
    for transition in transitions:
        if start_id is not None and transition.target == start_id:
            continue
        if transition.source == transition.target:
            continue
        if transition.source not in step_ids or transition.target not in step_ids:
            continue
        edges.append((transition.source, transition.target))
    return edges


def _dfs_roots(node_ids: list[str], edges: list[LayoutEdge], first: str | None) -> list[str]:
    """Order DFS roots: the start step, then steps without incoming edges, then the rest."""
    has_parent = {target for _, target in edges}
    roots = [first] if first is not None else []
    roots += [n for n in node_ids if n not in has_parent and n != first]
    roots += [n for n in node_ids if n in has_parent and n != first]
    return roots


def break_cycles(node_ids: list[str], edges: list[LayoutEdge], first: str | None = None) -> list[LayoutEdge]:
    """
    Make the edge list acyclic by reversing the back edges of a DFS.

    Args:
        node_ids: All node ids, in document order
        edges: Directed edges (may contain cycles)
        first: Node to start the DFS from, if any

    Returns:
        A new edge list of the same length, with back edges reversed
    """
    outgoing: dict[str, list[int]] = defaultdict(list)
    for index, (source, _) in enumerate(edges):
        outgoing[source].append(index)

    result = list(edges)
    # 1 = on the DFS stack, 2 = finished
    state: dict[str, int] = {}

    for root in _dfs_roots(node_ids, edges, first):
        if state.get(root):
            continue
        state[root] = 1
        stack: list[tuple[str, Iterator[int]]] = [(root, iter(outgoing[root]))]

        while stack:
            node, pending = stack[-1]
            descended = False
            for index in pending:
                source, target = edges[index]
                target_state = state.get(target, 0)
                if target_state == 1:
                    result[index] = (target, source)
                elif target_state == 0:
                    state[target] = 1
                    stack.append((target, iter(outgoing[target])))
                    descended = True
                    break
            if not descended:
                state[node] = 2
                stack.pop()

    return result


def assign_ranks(node_ids: list[str], edges: list[LayoutEdge]) -> dict[str, int]:
    """
    Assign each node the length of the longest path reaching it.

    Edges must be acyclic; every edge then ends on a strictly greater rank.
    """
    successors: dict[str, list[str]] = defaultdict(list)
    in_degree: dict[str, int] = {n: 0 for n in node_ids}
    for source, target in edges:
        successors[source].append(target)
        in_degree[target] += 1

    ranks: dict[str, int] = {n: 0 for n in node_ids}
    queue = [n for n in node_ids if in_degree[n] == 0]

    while queue:
        current = queue.pop(0)
        for child in successors[current]:
            ranks[child] = max(ranks[child], ranks[current] + 1)
            in_degree[child] -= 1
            if in_degree[child] == 0:
                queue.append(child)

    return ranks


def count_crossings(layers: list[list[str]], edges: list[LayoutEdge], ranks: dict[str, int]) -> int:
    """Count crossings between edges joining adjacent ranks."""
    index = {n: i for layer in layers for i, n in enumerate(layer)}
    by_rank: dict[int, list[tuple[int, int]]] = defaultdict(list)
    for source, target in edges:
        if ranks[target] == ranks[source] + 1:
            by_rank[ranks[source]].append((index[source], index[target]))

    crossings = 0
    for segments in by_rank.values():
        for i, (a_top, a_bottom) in enumerate(segments):
            for b_top, b_bottom in segments[i + 1:]:
                if (a_top - b_top) * (a_bottom - b_bottom) < 0:
                    crossings += 1
    return crossings


def _sort_by_barycenter(layer: list[str], neighbors: dict[str, list[str]], reference: list[str]) -> list[str]:
    """Sort a layer by the mean position of each node's neighbors in the reference layer."""
    ref_index = {n: i for i, n in enumerate(reference)}

    def key(item: tuple[int, str]) -> float:
        position, node = item
        placed = [ref_index[n] for n in neighbors[node] if n in ref_index]
        if not placed:
            return position
        return sum(placed) / len(placed)

    return [node for _, node in sorted(enumerate(layer), key=key)]


def order_layers(
    node_ids: list[str],
    edges: list[LayoutEdge],
    ranks: dict[str, int],
    sweeps: int = DEFAULT_SWEEPS
) -> list[list[str]]:
    """
    Group nodes into ranks and order each rank to reduce edge crossings.

    Alternates downward sweeps (ordering by predecessors) and upward sweeps
    (ordering by successors), keeping the ordering with the fewest crossings.
    Ties keep document order, so the result is deterministic.
    """
    depth = max(ranks.values(), default=-1) + 1
    layers: list[list[str]] = [[] for _ in range(depth)]
    for node in node_ids:
        layers[ranks[node]].append(node)

    predecessors: dict[str, list[str]] = defaultdict(list)
    successors: dict[str, list[str]] = defaultdict(list)
    for source, target in edges:
        predecessors[target].append(source)
        successors[source].append(target)

    best = [list(layer) for layer in layers]
    best_crossings = count_crossings(best, edges, ranks)

    for sweep in range(sweeps):
        if best_crossings == 0:
            break
        if sweep % 2 == 0:
            for r in range(1, depth):
                layers[r] = _sort_by_barycenter(layers[r], predecessors, layers[r - 1])
        else:
            for r in range(depth - 2, -1, -1):
                layers[r] = _sort_by_barycenter(layers[r], successors, layers[r + 1])

        crossings = count_crossings(layers, edges, ranks)
        if crossings < best_crossings:
            best = [list(layer) for layer in layers]
            best_crossings = crossings

    return best


def layered_layout(
    steps: list["Step"],
    transitions: list["Transition"],
    node_width: float = DEFAULT_NODE_WIDTH,
    node_height: float = DEFAULT_NODE_HEIGHT,
    node_sep: float = DEFAULT_NODE_SEP,
    rank_sep: float = DEFAULT_RANK_SEP,
    sweeps: int = DEFAULT_SWEEPS
) -> list["Step"]:
    """
    Arrange steps in top-to-bottom ranks following transition direction.

    Every step is treated as a node_width x node_height box. Transitions into
    the start step are ignored so the start step always sits on the top rank.
    Cycles and disconnected steps still get a position.

    Args:
        steps: Steps to arrange
        transitions: Transitions defining the hierarchy
        node_width: Width of every step box
        node_height: Height of every step box
        node_sep: Horizontal gap between boxes in the same rank
        rank_sep: Vertical gap between ranks
        sweeps: Number of barycenter ordering passes

    Returns:
        The same list of steps (modified in-place)
    """
    if not steps:
        return steps

    # Repeated ids collapse onto one layout node
    node_ids = list(dict.fromkeys(s.id for s in steps))
    start = find_start_step(steps)

    edges = layout_edges(steps, transitions)
    edges = break_cycles(node_ids, edges, start.id if start else None)
    ranks = assign_ranks(node_ids, edges)
    layers = order_layers(node_ids, edges, ranks, sweeps)

    # Node centers; every rank is centered on x = 0, then shifted right
    pitch_x = node_width + node_sep
    pitch_y = node_height + rank_sep
    centers: dict[str, tuple[float, float]] = {}
    for rank, layer in enumerate(layers):
        offset = (len(layer) - 1) * pitch_x / 2
        for i, node in enumerate(layer):
            centers[node] = (i * pitch_x - offset, rank * pitch_y + node_height / 2)

    shift = node_width / 2 - min(x for x, _ in centers.values())
    for step in steps:
        cx, cy = centers[step.id]
        step.position = Position(x=cx + shift - node_width / 2, y=cy - node_height / 2)

    return steps
