import warp as wp
from pbf_utils.structs import *

@wp.func
def cell_coord(model: ModelStruct, x: wp.vec3):
    rel = (x - model.min_bbox) / model.h
    cx = wp.clamp(int(wp.floor(rel[0])), 0, model.grid_dim_x - 1)
    cy = wp.clamp(int(wp.floor(rel[1])), 0, model.grid_dim_y - 1)
    cz = wp.clamp(int(wp.floor(rel[2])), 0, model.grid_dim_z - 1)
    return wp.vec3i(cx, cy, cz)

@wp.func
def flatten_cell(model: ModelStruct, cx: int, cy: int, cz: int):
    return (cx * model.grid_dim_y + cy) * model.grid_dim_z + cz

@wp.kernel
def compute_grid_hash(
    state: StateStruct, model: ModelStruct
):
    """
    Assign every active particle to a cell of the uniform hash grid.

    PURPOSE:
    The neighbor search only looks at the 27 cells around a particle, so each
    particle is tagged with the flat index of the cell containing its predicted
    position. Positions outside the bounding box are clamped onto the border
    cells; the particle itself is not moved.

    INPUT VARIABLES (from state):
    - particle_x_pred[p]: vec3 - Predicted position of particle p

    INPUT VARIABLES (from model):
    - min_bbox: vec3 - Lower corner of the hashed domain
    - h: float - Cell size (the kernel support radius)
    - grid_dim_x, grid_dim_y, grid_dim_z: int - Number of cells per axis

    OUTPUT VARIABLES (modified in state):
    - grid_keys[p]: int - Cell hash (cx * dim_y + cy) * dim_z + cz
    - grid_values[p]: int - Particle index p, permuted along with the keys by the sort
    """
    p = wp.tid()
    c = cell_coord(model, state.particle_x_pred[p])
    state.grid_keys[p] = flatten_cell(model, c[0], c[1], c[2])
    state.grid_values[p] = p
