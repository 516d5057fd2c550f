import warp as wp
from pbf_utils.structs import *
from pbf_kernels.compute_grid_hash import cell_coord, flatten_cell

@wp.kernel
def find_neighbors(
    state: StateStruct, model: ModelStruct
):
    """
    Build the neighbor list of every active particle.

    PURPOSE:
    Scans the particle's own cell and the 26 adjacent cells of the hash grid.
    For each cell the sorted table is walked from cell_start while the key is
    unchanged. A particle j != i is accepted when it lies strictly within the
    support radius h of particle i. Once max_neighbors are found, further
    candidates are dropped.

    INPUT VARIABLES (from state):
    - particle_x_pred[i]: vec3 - Predicted positions
    - grid_keys, grid_values: int - Sorted (hash, particle index) table
    - cell_start[hash]: int - First sorted index of each cell, EMPTY_CELL if none

    INPUT VARIABLES (from model):
    - h: float - Support radius
    - max_neighbors: int - Neighbor cap
    - n_particles: int - Number of active particles (length of the sorted table)

    OUTPUT VARIABLES (modified in state):
    - neighbor_counts[i]: int - Number of neighbors found
    - neighbor_indices[i * max_neighbors + k]: int - k-th neighbor of particle i
    """
    i = wp.tid()
    x_i = state.particle_x_pred[i]
    c = cell_coord(model, x_i)
    base = i * model.max_neighbors

    count = int(0)
    k = int(0)
    for dx in range(-1, 2):
        for dy in range(-1, 2):
            for dz in range(-1, 2):
                cx = c[0] + dx
                cy = c[1] + dy
                cz = c[2] + dz
                if (cx >= 0 and cx < model.grid_dim_x and
                    cy >= 0 and cy < model.grid_dim_y and
                    cz >= 0 and cz < model.grid_dim_z):
                    key = flatten_cell(model, cx, cy, cz)
                    k = state.cell_start[key]
                    if k != EMPTY_CELL:
                        while k < model.n_particles and state.grid_keys[k] == key:
                            j = state.grid_values[k]
                            if j != i and count < model.max_neighbors:
                                if wp.length(x_i - state.particle_x_pred[j]) < model.h:
                                    state.neighbor_indices[base + count] = j
                                    count += 1
                            k += 1

    state.neighbor_counts[i] = count
