"""Grid graphs and articulation points.

Articulation points (cut vertices) are found with Tarjan's low-link depth
first search. The search keeps its own stack of frames instead of recursing,
since a path through a large grid is far deeper than Python's recursion limit.

A set of "relevant" vertices can be supplied. A vertex then only counts as an
articulation point if removing it separates relevant vertices from each other,
and relevant vertices are always reported as articulation points.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from wavetile.types import CellIndex

# Cardinal steps as (dx, dy)
_GRID_STEPS = ((-1, 0), (0, 1), (1, 0), (0, -1))


def grid_neighbours(width: int, height: int, periodic: bool) -> list[list[CellIndex]]:
    """4-connected neighbour lists of a width x height grid.

    Cells are numbered x + y * width. With ``periodic`` the grid wraps around
    both axes.
    """
    neighbours: list[list[CellIndex]] = []
    for y in range(height):
        for x in range(width):
            cell_neighbours: list[CellIndex] = []
            for dx, dy in _GRID_STEPS:
                nx, ny = x + dx, y + dy
                if periodic:
                    nx %= width
                    ny %= height
                elif not (0 <= nx < width and 0 <= ny < height):
                    continue
                cell_neighbours.append(nx + ny * width)
            neighbours.append(cell_neighbours)
    return neighbours


@dataclass
class ArticulationResult:
    """Outcome of an articulation point search.

    Attributes:
        is_articulation: Per vertex, whether it is an articulation point.
        visited: Per vertex, whether the search reached it. With relevant
            vertices this is the component containing them.
    """

    is_articulation: list[bool]
    visited: list[bool]


class _CutVertexSearch:
    """Iterative Tarjan search sharing numbering across several roots."""

    def __init__(
        self,
        neighbours: Sequence[Sequence[CellIndex]],
        walkable: Sequence[bool],
        relevant: Sequence[bool] | None,
    ) -> None:
        count = len(neighbours)
        self.neighbours = neighbours
        self.walkable = walkable
        self.relevant = relevant
        self.low = [0] * count
        self.order = [0] * count  # 0 means unvisited
        self.is_articulation = [False] * count
        self._counter = 1

    def _enter(self, u: CellIndex) -> list:
        self.order[u] = self.low[u] = self._counter
        self._counter += 1
        is_relevant = self.relevant is not None and self.relevant[u]
        if is_relevant:
            self.is_articulation[u] = True
        # Frame: [vertex, next neighbour position, subtree holds relevant vertex]
        return [u, 0, is_relevant]

    def run(self, root: CellIndex) -> int:
        """Search the component of ``root`` and return the root's child count."""
        low, order = self.low, self.order
        child_count = 0
        stack = [self._enter(root)]

        while stack:
            frame = stack[-1]
            u = frame[0]
            edges = self.neighbours[u]

            if frame[1] < len(edges):
                v = edges[frame[1]]
                frame[1] += 1
                if not self.walkable[v]:
                    continue
                if order[v] == 0:
                    if len(stack) == 1:
                        child_count += 1
                    stack.append(self._enter(v))
                else:
                    low[u] = min(low[u], order[v])
                continue

            # All edges of u explored: return to the parent frame
            stack.pop()
            if not stack:
                break
            parent = stack[-1]
            p = parent[0]
            if frame[2]:
                parent[2] = True
            if low[u] >= order[p] and (self.relevant is None or frame[2]):
                self.is_articulation[p] = True
            low[p] = min(low[p], low[u])

        return child_count


def articulation_points(
    neighbours: Sequence[Sequence[CellIndex]],
    walkable: Sequence[bool],
    relevant: Sequence[bool] | None = None,
) -> ArticulationResult | None:
    """Find the articulation points of the subgraph induced by ``walkable``.

    Args:
        neighbours: Adjacency lists of the full graph.
        walkable: Vertices that belong to the subgraph.
        relevant: Optional vertices that must stay connected to each other.
            Every relevant vertex must also be walkable.

    Returns:
        The articulation points, or None if the relevant vertices are not
        all in one connected component.
    """
    search = _CutVertexSearch(neighbours, walkable, relevant)
    count = len(neighbours)

    if relevant is not None:
        root = next(
            (i for i in range(count) if walkable[i] and relevant[i]), None
        )
        if root is not None:
            # The root is relevant, so it is already marked
            search.run(root)
        for i in range(count):
            if relevant[i] and search.order[i] == 0:
                return None
    else:
        for i in range(count):
            if not walkable[i] or search.order[i] != 0:
                continue
            # The root of a DFS tree is a cut vertex exactly when it has more
            # than one child
            search.is_articulation[i] = search.run(i) > 1

    return ArticulationResult(
        is_articulation=search.is_articulation,
        visited=[number != 0 for number in search.order],
    )
