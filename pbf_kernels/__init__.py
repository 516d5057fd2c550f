"""
Kernels of the position based fluids step, in pipeline order.
"""
from .apply_force_predict_position import apply_force_predict_position
from .compute_grid_hash import compute_grid_hash
from .build_grid_cell_start import build_grid_cell_start
from .find_neighbors import find_neighbors
from .compute_lambda import compute_lambda
from .compute_delta_p import compute_delta_p
from .update_predicted_position import update_predicted_position
from .update_velocity import update_velocity
from .compute_vorticity import compute_vorticity
from .apply_velocity_correction import apply_xsph_viscosity, apply_vorticity_confinement
from .finalize_position import finalize_position

__all__ = [
    'apply_force_predict_position',
    'compute_grid_hash',
    'build_grid_cell_start',
    'find_neighbors',
    'compute_lambda',
    'compute_delta_p',
    'update_predicted_position',
    'update_velocity',
    'compute_vorticity',
    'apply_xsph_viscosity',
    'apply_vorticity_confinement',
    'finalize_position',
]
