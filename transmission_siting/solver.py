# solver.py
# least-cost path over a CostGrid with 8-connectivity.
#
# moving into a cell costs that cell's cost times the step length in cells
# (1 orthogonal, sqrt(2) diagonal). a diagonal step is only taken when both
# orthogonal cells it brushes past are passable, so paths never cut the
# corner of a blocked or outside-AOI cell. A* uses the straight-line cell
# distance to the goal scaled by the cheapest passable cell as its
# heuristic, which never overestimates, so returned paths are optimal on
# the grid. ties on f-score are broken by insertion order to keep results
# reproducible.
#
# without corner cutting, diagonal moves add no connectivity, so endpoints
# in different 4-connected components of the passable mask are rejected
# before searching (skimage connected-component labelling).

import heapq
import logging
import math
from dataclasses import dataclass

from skimage.measure import label

from transmission_siting.cancellation import check_cancelled
from transmission_siting.exceptions import InvalidEndpointError, NoPathError

log = logging.getLogger(__name__)

SQRT2 = math.sqrt(2.0)

# (row delta, col delta, step length in cells)
STEPS = (
    (-1, 0, 1.0),
    (0, -1, 1.0),
    (0, 1, 1.0),
    (1, 0, 1.0),
    (-1, -1, SQRT2),
    (-1, 1, SQRT2),
    (1, -1, SQRT2),
    (1, 1, SQRT2),
)


@dataclass(frozen=True)
class GridPath:
    cells: tuple
    cost: float
    steps: float
    expanded: int = 0


def check_endpoint(grid, cell, endpoint):
    if cell is None or not grid.contains_cell(cell):
        raise InvalidEndpointError(f"{endpoint} lies outside the cost grid", endpoint)
    if not grid.in_aoi[cell]:
        raise InvalidEndpointError(f"{endpoint} cell {cell} is outside the AOI", endpoint)
    if not grid.is_passable(cell):
        raise InvalidEndpointError(f"{endpoint} cell {cell} is impassable", endpoint)


class AStarSolver:
    name = "astar"

    def heuristic_scale(self, grid):
        return grid.min_cost

    def solve(self, grid, start, goal, cancel=None):
        """
        find the minimum-cost cell path from start to goal.

        raises InvalidEndpointError when either endpoint is unusable,
        NoPathError when they are not connected and Cancelled when the
        token is cancelled mid-search.
        """
        start, goal = tuple(start), tuple(goal)
        check_endpoint(grid, start, "origin")
        check_endpoint(grid, goal, "destination")
        if start == goal:
            return GridPath(cells=(start,), cost=0.0, steps=0.0)

        components = label(grid.passable, connectivity=1)
        if components[start] != components[goal]:
            raise NoPathError("origin and destination are separated by impassable cells")

        n_rows, n_cols = grid.shape
        cost = grid.cost.ravel().tolist()
        scale = self.heuristic_scale(grid)
        goal_row, goal_col = goal
        source = start[0] * n_cols + start[1]
        target = goal_row * n_cols + goal_col

        g_score = [math.inf] * len(cost)
        came_from = [-1] * len(cost)
        closed = bytearray(len(cost))
        g_score[source] = 0.0
        h0 = scale * math.hypot(start[0] - goal_row, start[1] - goal_col)
        open_set = [(h0, 0, source)]
        counter = 1
        expanded = 0

        while open_set:
            check_cancelled(cancel)
            _, _, current = heapq.heappop(open_set)
            if closed[current]:
                continue
            if current == target:
                break
            closed[current] = 1
            expanded += 1
            row, col = divmod(current, n_cols)
            g_current = g_score[current]
            for d_row, d_col, step in STEPS:
                n_row, n_col = row + d_row, col + d_col
                if n_row < 0 or n_row >= n_rows or n_col < 0 or n_col >= n_cols:
                    continue
                neighbour = n_row * n_cols + n_col
                if closed[neighbour]:
                    continue
                cell_cost = cost[neighbour]
                if cell_cost == math.inf:
                    continue
                if d_row and d_col and (cost[row * n_cols + n_col] == math.inf
                                        or cost[n_row * n_cols + col] == math.inf):
                    continue
                tentative = g_current + cell_cost * step
                if tentative < g_score[neighbour]:
                    g_score[neighbour] = tentative
                    came_from[neighbour] = current
                    f_score = tentative + scale * math.hypot(n_row - goal_row, n_col - goal_col)
                    heapq.heappush(open_set, (f_score, counter, neighbour))
                    counter += 1
        else:
            raise NoPathError("search exhausted without reaching the destination")

        cells = []
        node = target
        while node != -1:
            cells.append(divmod(node, n_cols))
            node = came_from[node]
        cells.reverse()

        steps = 0.0
        for (r0, c0), (r1, c1) in zip(cells, cells[1:]):
            steps += SQRT2 if (r0 != r1 and c0 != c1) else 1.0

        log.info(f"{self.name}: {len(cells)} cells, cost {g_score[target]:.2f}, {expanded} cells expanded")
        return GridPath(cells=tuple(cells), cost=g_score[target], steps=steps, expanded=expanded)


class DijkstraSolver(AStarSolver):
    """uninformed search; same optimal cost as A*, more cells expanded."""

    name = "dijkstra"

    def heuristic_scale(self, grid):
        return 0.0


SOLVERS = {
    AStarSolver.name: AStarSolver,
    DijkstraSolver.name: DijkstraSolver,
}


def get_solver(name):
    try:
        return SOLVERS[name]()
    except KeyError:
        raise ValueError(f"unknown solver {name!r}, choose from {sorted(SOLVERS)}") from None
