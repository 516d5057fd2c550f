"""
Signed distance field kernels: voxelization, distance computation and trilinear sampling.
"""
from .voxelize import voxelize
from .compute_distance import compute_distance
from .sample_field import sample_field, collision_correction, sample_field_points

__all__ = [
    'voxelize',
    'compute_distance',
    'sample_field',
    'collision_correction',
    'sample_field_points',
]
