import numpy as np
import pytest
import warp as wp

from pbf_utils import Scene

wp.init()


@pytest.fixture
def device():
    return "cpu"


@pytest.fixture
def small_scene():
    """A scene with no initial particles and no gravity, for driving the pipeline by hand."""
    return Scene(
        particle_count=0,
        max_particle_count=256,
        max_neighbor_count=64,
        solver_iterations=3,
        radius=0.1,
        bounding_box=[[-1.0, -1.0, -1.0], [1.0, 1.0, 1.0]],
        forces=[[0.0, 0.0, 0.0]],
        resolution=8,
    )


def lattice(n_per_axis, spacing, origin=(0.0, 0.0, 0.0)):
    axis = np.arange(n_per_axis) * spacing
    xx, yy, zz = np.meshgrid(axis, axis, axis, indexing='ij')
    points = np.stack([xx.flatten(), yy.flatten(), zz.flatten()], axis=1)
    return (points + np.asarray(origin)).astype(np.float32)
