"""Surface Area Heuristic BVH builder and its flat (arena) layout.

The hierarchy is built once on the host with NumPy and stored as a single
contiguous array of nodes addressed by index. Interior nodes reference two
children by index; leaves reference a contiguous range of a reordered
primitive-index array. The arena is then uploaded into Taichi fields and is
read-only while rendering.

SAH cost function (binned, along the axis of greatest centroid extent):

    cost = traverse_cost
           + (SA(left) * n_left + SA(right) * n_right) / SA(parent) * intersect_cost

A node becomes a leaf when it holds at most ``MAX_LEAF_SIZE`` primitives, or
when no split is cheaper than intersecting every primitive directly and the
node is small enough (``MAX_COST_LEAF_SIZE``). Spatial-median splits are used
when binning cannot separate the primitives or the tree gets too deep.

Example:
    >>> builder = BVHBuilder()
    >>> flat = builder.build([AABB.from_points((0, 0, 0), (1, 1, 1))])
    >>> flat.num_nodes
    1
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
import taichi as ti

from pathtracer.geometry.aabb import AABB

logger = logging.getLogger(__name__)

MAX_LEAF_SIZE = 2
MAX_COST_LEAF_SIZE = 8
NUM_BINS = 16

# Beyond this depth only median splits are used, which bounds the tree depth
# by MAX_BUILD_DEPTH + log2(primitive count)
MAX_BUILD_DEPTH = 48

# Traversal stack size on the device
BVH_STACK_SIZE = 64

MAX_PRIMITIVES = 4096
MAX_BVH_NODES = 2 * MAX_PRIMITIVES


@dataclass
class FlatBVH:
    """BVH stored as an arena of nodes.

    Attributes:
        bbox_min: (N, 3) float32 lower corners.
        bbox_max: (N, 3) float32 upper corners.
        left: (N,) int32 left child index, -1 for leaves.
        right: (N,) int32 right child index, -1 for leaves.
        prim_start: (N,) int32 first slot in prim_indices (leaves only).
        prim_count: (N,) int32 number of primitives (0 for interior nodes).
        prim_indices: (M,) int32 primitive ids in leaf order.
    """

    bbox_min: np.ndarray
    bbox_max: np.ndarray
    left: np.ndarray
    right: np.ndarray
    prim_start: np.ndarray
    prim_count: np.ndarray
    prim_indices: np.ndarray

    @property
    def num_nodes(self) -> int:
        return int(self.left.shape[0])

    def is_leaf(self, node: int) -> bool:
        return bool(self.left[node] < 0)

    def node_box(self, node: int) -> AABB:
        return AABB.from_points(self.bbox_min[node], self.bbox_max[node])

    def depth(self) -> int:
        """Length of the longest root-to-leaf path (0 for an empty tree)."""
        if self.num_nodes == 0:
            return 0
        best = 0
        stack = [(0, 1)]
        while stack:
            node, d = stack.pop()
            best = max(best, d)
            if not self.is_leaf(node):
                stack.append((int(self.left[node]), d + 1))
                stack.append((int(self.right[node]), d + 1))
        return best

    def leaf_primitives(self, node: int) -> np.ndarray:
        start = int(self.prim_start[node])
        return self.prim_indices[start : start + int(self.prim_count[node])]

    def validate(self, bounds: Sequence[AABB]) -> None:
        """Check the containment invariant for every node.

        Every leaf box must contain the bounds of its primitives and every
        interior box must contain both child boxes. Every primitive must
        appear in exactly one leaf.

        Raises:
            ValueError: If any node violates the invariant.
        """
        seen = np.zeros(len(bounds), dtype=np.int32)
        for node in range(self.num_nodes):
            box = self.node_box(node)
            if self.is_leaf(node):
                for prim in self.leaf_primitives(node):
                    seen[prim] += 1
                    if not box.contains(bounds[prim]):
                        raise ValueError(f"Leaf {node} does not contain primitive {prim}")
            else:
                for child in (int(self.left[node]), int(self.right[node])):
                    if not box.contains(self.node_box(child)):
                        raise ValueError(f"Node {node} does not contain child {child}")
        if np.any(seen != 1):
            raise ValueError("Every primitive must be referenced by exactly one leaf")

    @staticmethod
    def empty() -> "FlatBVH":
        return FlatBVH(
            bbox_min=np.zeros((0, 3), dtype=np.float32),
            bbox_max=np.zeros((0, 3), dtype=np.float32),
            left=np.zeros(0, dtype=np.int32),
            right=np.zeros(0, dtype=np.int32),
            prim_start=np.zeros(0, dtype=np.int32),
            prim_count=np.zeros(0, dtype=np.int32),
            prim_indices=np.zeros(0, dtype=np.int32),
        )


def _round_outward(lo: np.ndarray, hi: np.ndarray):
    """Convert float64 corners to float32 without shrinking the box."""
    lo32 = lo.astype(np.float32)
    hi32 = hi.astype(np.float32)
    lo32 = np.where(lo32.astype(np.float64) > lo, np.nextafter(lo32, np.float32(-np.inf)), lo32)
    hi32 = np.where(hi32.astype(np.float64) < hi, np.nextafter(hi32, np.float32(np.inf)), hi32)
    return lo32, hi32


class BVHBuilder:
    """Build a BVH over primitive bounding boxes using the binned SAH."""

    def __init__(self, traverse_cost: float = 1.0, intersect_cost: float = 1.5):
        """
        Args:
            traverse_cost: Cost of traversing one BVH node.
            intersect_cost: Cost of testing one primitive intersection.
        """
        self.traverse_cost = traverse_cost
        self.intersect_cost = intersect_cost

    def build(self, bounds: Sequence[AABB]) -> FlatBVH:
        """Build the hierarchy.

        Args:
            bounds: Bounding box of every primitive, indexed by primitive id.

        Returns:
            The flattened tree. An empty input produces an empty tree.
        """
        if len(bounds) == 0:
            return FlatBVH.empty()

        self._mins = np.array([b.min for b in bounds], dtype=np.float64)
        self._maxs = np.array([b.max for b in bounds], dtype=np.float64)
        self._centroids = 0.5 * (self._mins + self._maxs)
        self._node_min: list[np.ndarray] = []
        self._node_max: list[np.ndarray] = []
        self._left: list[int] = []
        self._right: list[int] = []
        self._start: list[int] = []
        self._count: list[int] = []
        self._order: list[int] = []

        self._build_node(np.arange(len(bounds), dtype=np.int64), depth=0)

        lo, hi = _round_outward(np.array(self._node_min), np.array(self._node_max))
        flat = FlatBVH(
            bbox_min=lo,
            bbox_max=hi,
            left=np.array(self._left, dtype=np.int32),
            right=np.array(self._right, dtype=np.int32),
            prim_start=np.array(self._start, dtype=np.int32),
            prim_count=np.array(self._count, dtype=np.int32),
            prim_indices=np.array(self._order, dtype=np.int32),
        )
        logger.debug("Built BVH with %d nodes over %d primitives", flat.num_nodes, len(bounds))
        return flat

    def _build_node(self, indices: np.ndarray, depth: int) -> int:
        """Recursively build the subtree over ``indices``; returns its node index."""
        node = len(self._left)
        lo = self._mins[indices].min(axis=0)
        hi = self._maxs[indices].max(axis=0)
        self._node_min.append(lo)
        self._node_max.append(hi)
        self._left.append(-1)
        self._right.append(-1)
        self._start.append(-1)
        self._count.append(0)

        count = len(indices)
        if count <= MAX_LEAF_SIZE:
            self._make_leaf(node, indices)
            return node

        centroids = self._centroids[indices]
        c_lo = centroids.min(axis=0)
        c_hi = centroids.max(axis=0)
        axis = int(np.argmax(c_hi - c_lo))
        extent = c_hi[axis] - c_lo[axis]

        left_idx = right_idx = None
        if extent <= 1e-12:
            # All centroids coincide, binning cannot separate them
            if count <= MAX_COST_LEAF_SIZE:
                self._make_leaf(node, indices)
                return node
        elif depth < MAX_BUILD_DEPTH:
            split, cost = self._best_binned_split(indices, axis, c_lo[axis], extent, lo, hi)
            leaf_cost = self.intersect_cost * count
            if split is None or (cost >= leaf_cost and count <= MAX_COST_LEAF_SIZE):
                if count <= MAX_COST_LEAF_SIZE:
                    self._make_leaf(node, indices)
                    return node
            else:
                bins = self._bin_ids(centroids[:, axis], c_lo[axis], extent)
                mask = bins < split
                left_idx, right_idx = indices[mask], indices[~mask]

        if left_idx is None or len(left_idx) == 0 or len(right_idx) == 0:
            left_idx, right_idx = self._median_split(indices, axis)

        left = self._build_node(left_idx, depth + 1)
        right = self._build_node(right_idx, depth + 1)
        self._left[node] = left
        self._right[node] = right
        return node

    def _make_leaf(self, node: int, indices: np.ndarray) -> None:
        self._start[node] = len(self._order)
        self._count[node] = len(indices)
        self._order.extend(int(i) for i in indices)

    def _median_split(self, indices: np.ndarray, axis: int):
        order = np.argsort(self._centroids[indices, axis], kind="stable")
        mid = len(indices) // 2
        return indices[order[:mid]], indices[order[mid:]]

    @staticmethod
    def _bin_ids(values: np.ndarray, base: float, extent: float) -> np.ndarray:
        ids = ((values - base) / extent * NUM_BINS).astype(np.int64)
        return np.clip(ids, 0, NUM_BINS - 1)

    def _best_binned_split(self, indices, axis, base, extent, lo, hi):
        """Evaluate the NUM_BINS - 1 candidate planes.

        Returns:
            (split, cost) where primitives in bins < split go left, or
            (None, inf) when no plane separates them.
        """
        parent_area = AABB.from_points(lo, hi).surface_area()
        if parent_area <= 0.0:
            return None, float("inf")

        bins = self._bin_ids(self._centroids[indices, axis], base, extent)
        counts = np.bincount(bins, minlength=NUM_BINS)
        bin_boxes = [AABB.empty() for _ in range(NUM_BINS)]
        for b in np.nonzero(counts)[0]:
            members = indices[bins == b]
            bin_boxes[b] = AABB(
                min=self._mins[members].min(axis=0), max=self._maxs[members].max(axis=0)
            )

        # Sweep from the left and the right to get the areas of each side
        left_area = np.zeros(NUM_BINS)
        left_count = np.zeros(NUM_BINS, dtype=np.int64)
        box = AABB.empty()
        running = 0
        for b in range(NUM_BINS - 1):
            box = box.union(bin_boxes[b])
            running += counts[b]
            left_area[b + 1] = box.surface_area()
            left_count[b + 1] = running

        best_split = None
        best_cost = float("inf")
        box = AABB.empty()
        running = 0
        for b in range(NUM_BINS - 1, 0, -1):
            box = box.union(bin_boxes[b])
            running += counts[b]
            n_left = left_count[b]
            if n_left == 0 or running == 0:
                continue
            cost = self.traverse_cost + self.intersect_cost * (
                left_area[b] * n_left + box.surface_area() * running
            ) / parent_area
            if cost < best_cost:
                best_cost = cost
                best_split = b
        return best_split, best_cost


# =============================================================================
# Device storage
# =============================================================================

bvh_bbox_min = ti.Vector.field(3, dtype=ti.f32, shape=MAX_BVH_NODES)
bvh_bbox_max = ti.Vector.field(3, dtype=ti.f32, shape=MAX_BVH_NODES)
bvh_left = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_right = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_prim_start = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_prim_count = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_prim_indices = ti.field(dtype=ti.i32, shape=MAX_PRIMITIVES)
num_bvh_nodes = ti.field(dtype=ti.i32, shape=())


def clear_bvh() -> None:
    """Drop the resident tree; every ray misses until a new one is uploaded."""
    num_bvh_nodes[None] = 0


def upload_bvh(flat: FlatBVH) -> None:
    """Copy a flattened tree into the device fields.

    Raises:
        RuntimeError: If the tree exceeds the preallocated capacity.
    """
    n = flat.num_nodes
    if n > MAX_BVH_NODES or flat.prim_indices.shape[0] > MAX_PRIMITIVES:
        raise RuntimeError(
            f"BVH with {n} nodes exceeds capacity ({MAX_BVH_NODES} nodes, "
            f"{MAX_PRIMITIVES} primitives)"
        )

    def padded(arr: np.ndarray, size: int, fill=0) -> np.ndarray:
        out = np.full((size,) + arr.shape[1:], fill, dtype=arr.dtype)
        out[: arr.shape[0]] = arr
        return out

    bvh_bbox_min.from_numpy(padded(flat.bbox_min, MAX_BVH_NODES))
    bvh_bbox_max.from_numpy(padded(flat.bbox_max, MAX_BVH_NODES))
    bvh_left.from_numpy(padded(flat.left, MAX_BVH_NODES, -1))
    bvh_right.from_numpy(padded(flat.right, MAX_BVH_NODES, -1))
    bvh_prim_start.from_numpy(padded(flat.prim_start, MAX_BVH_NODES))
    bvh_prim_count.from_numpy(padded(flat.prim_count, MAX_BVH_NODES))
    bvh_prim_indices.from_numpy(padded(flat.prim_indices, MAX_PRIMITIVES))
    num_bvh_nodes[None] = n
