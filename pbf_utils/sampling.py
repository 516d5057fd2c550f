"""
Point samplers for filling axis-aligned boxes with particles.

Every sampler takes the box as (box_min, box_max) corners and returns an
array of shape (n_points, 3), float32, so that spawn regions can be filled
round-robin with an exact particle count.
"""
import numpy as np
from math import ceil, sqrt


def _box(box_min, box_max):
    box_min = np.asarray(box_min, dtype=np.float64)
    box_max = np.asarray(box_max, dtype=np.float64)
    if box_min.shape != (3,) or box_max.shape != (3,):
        raise ValueError("Box corners must be 3-vectors")
    if np.any(box_max < box_min):
        raise ValueError(f"Inverted box: min {box_min.tolist()} max {box_max.tolist()}")
    return box_min, box_max


def _grid_counts(n_points, size):
    """Points per axis so that the lattice holds at least n_points with roughly cubic cells."""
    size = np.maximum(size, 1e-9)
    spacing = (np.prod(size) / n_points) ** (1.0 / 3.0)
    counts = np.maximum(np.ceil(size / spacing).astype(int), 1)
    while np.prod(counts) < n_points:
        counts[np.argmax(size / counts)] += 1
    return counts


def sample_random(n_points, box_min, box_max, seed=30):
    """
    Uniformly random samples in a 3D box.

    Args:
        n_points (int): Number of samples to generate.
        box_min, box_max (array-like, shape (3,)): Box corners.
        seed (int): Random seed for reproducibility.

    Returns:
        np.ndarray: Array of shape (n_points, 3) of sample positions.
    """
    box_min, box_max = _box(box_min, box_max)
    rng = np.random.default_rng(seed)
    return rng.uniform(box_min, box_max, size=(n_points, 3)).astype(np.float32)


def sample_grid(n_points, box_min, box_max, seed=30):
    """
    Regular lattice samples at cell centers, truncated to n_points.
    The seed is unused and kept so all samplers share one signature.
    """
    box_min, box_max = _box(box_min, box_max)
    if n_points <= 0:
        return np.zeros((0, 3), dtype=np.float32)
    size = box_max - box_min
    counts = _grid_counts(n_points, size)
    axes = [box_min[a] + (np.arange(counts[a]) + 0.5) * size[a] / counts[a] for a in range(3)]
    xx, yy, zz = np.meshgrid(*axes, indexing='ij')
    samples = np.stack([xx.flatten(), yy.flatten(), zz.flatten()], axis=1)
    return samples[:n_points].astype(np.float32)


def sample_jittered_grid(n_points, box_min, box_max, seed=30, jitter=0.3):
    """
    Lattice samples with each point displaced uniformly by up to jitter/2 of
    a cell along every axis, clamped back into the box.
    """
    box_min, box_max = _box(box_min, box_max)
    samples = sample_grid(n_points, box_min, box_max).astype(np.float64)
    if n_points <= 0:
        return samples.astype(np.float32)
    cell = (box_max - box_min) / _grid_counts(n_points, box_max - box_min)
    rng = np.random.default_rng(seed)
    samples += rng.uniform(-0.5 * jitter * cell, 0.5 * jitter * cell, size=samples.shape)
    return np.clip(samples, box_min, box_max).astype(np.float32)


def sample_blue_noise(n_points, box_min, box_max, seed=30, k=30):
    """
    Poisson-disk samples (Bridson) in a 3D box.

    The disk radius is estimated from the box volume so the pass usually
    yields close to n_points samples; any shortfall is topped up with uniform
    random points so the result always has exactly n_points rows.

    Args:
        n_points (int): Desired number of samples.
        box_min, box_max (array-like, shape (3,)): Box corners.
        seed (int): Random seed.
        k (int): Number of candidates tried around each active sample.
    """
    box_min, box_max = _box(box_min, box_max)
    if n_points <= 0:
        return np.zeros((0, 3), dtype=np.float32)
    rng = np.random.default_rng(seed)
    size = np.maximum(box_max - box_min, 1e-9)

    r = (np.prod(size) / n_points) ** (1.0 / 3.0) * 0.7
    cell_size = r / sqrt(3)
    grid_shape = np.maximum(np.ceil(size / cell_size).astype(int), 1)
    grid = -np.ones(grid_shape, dtype=int)

    def grid_coords(p):
        return tuple(np.minimum(np.floor((p - box_min) / cell_size).astype(int), grid_shape - 1))

    def too_close(p):
        gx, gy, gz = grid_coords(p)
        for ix in range(max(0, gx - 2), min(grid_shape[0], gx + 3)):
            for iy in range(max(0, gy - 2), min(grid_shape[1], gy + 3)):
                for iz in range(max(0, gz - 2), min(grid_shape[2], gz + 3)):
                    idx = grid[ix, iy, iz]
                    if idx != -1 and np.linalg.norm(samples[idx] - p) < r:
                        return True
        return False

    p0 = rng.uniform(box_min, box_max)
    samples = [p0]
    active = [0]
    grid[grid_coords(p0)] = 0

    while active and len(samples) < n_points:
        slot = int(rng.integers(len(active)))
        base = samples[active[slot]]
        found = False
        for _ in range(k):
            direction = rng.normal(size=3)
            direction /= np.linalg.norm(direction)
            p = base + direction * rng.uniform(r, 2 * r)
            if np.all((p >= box_min) & (p <= box_max)) and not too_close(p):
                samples.append(p)
                grid[grid_coords(p)] = len(samples) - 1
                active.append(len(samples) - 1)
                found = True
                break
        if not found:
            active.pop(slot)

    samples = np.array(samples)
    missing = n_points - samples.shape[0]
    if missing > 0:
        samples = np.concatenate([samples, rng.uniform(box_min, box_max, size=(missing, 3))])
    return samples.astype(np.float32)


SAMPLERS = {
    "random": sample_random,
    "grid": sample_grid,
    "jittered_grid": sample_jittered_grid,
    "blue_noise": sample_blue_noise,
}


def sample_region(sampling_type, n_points, box_min, box_max, seed=30):
    if sampling_type not in SAMPLERS:
        raise ValueError(f"Unknown sampling type: {sampling_type}. "
                         f"Must be one of {sorted(SAMPLERS)}")
    return SAMPLERS[sampling_type](n_points, box_min, box_max, seed=seed)


def fill_cube_with_particles(center, target_count, cube_size=0.5):
    """
    Lattice-fill a cube of edge cube_size around center, stopping once
    target_count points are placed. The lattice spacing is
    (0.125 / target_count) ** (1/3), the spacing at which a cube of edge 0.5
    holds target_count points.
    """
    if target_count <= 0:
        return np.zeros((0, 3), dtype=np.float32)
    center = np.asarray(center, dtype=np.float64)
    spacing = (0.125 / target_count) ** (1.0 / 3.0)
    per_axis = int(ceil(cube_size / spacing)) + 1
    offsets = np.arange(per_axis) * spacing - 0.5 * cube_size
    offsets = offsets[offsets <= 0.5 * cube_size + 1e-9]
    xx, yy, zz = np.meshgrid(offsets, offsets, offsets, indexing='ij')
    points = center + np.stack([xx.flatten(), yy.flatten(), zz.flatten()], axis=1)
    return points[:target_count].astype(np.float32)
