"""
Utils package for particle sampling, scene description and obstacle meshes.
"""
from .sampling import sample_random, sample_grid, sample_jittered_grid, sample_blue_noise, sample_region, fill_cube_with_particles
from .meshes import box_mesh, mesh_from_dict, local_to_world_matrix
from .scene import Scene, SpawnRegion, InjectionEvent, ObstacleEvent

__all__ = [
    'sample_random', 'sample_grid', 'sample_jittered_grid', 'sample_blue_noise',
    'sample_region', 'fill_cube_with_particles',
    'box_mesh', 'mesh_from_dict', 'local_to_world_matrix',
    'Scene', 'SpawnRegion', 'InjectionEvent', 'ObstacleEvent',
]
