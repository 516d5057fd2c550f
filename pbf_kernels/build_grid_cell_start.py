import warp as wp
from pbf_utils.structs import *

@wp.kernel
def build_grid_cell_start(
    state: StateStruct, model: ModelStruct
):
    """
    Record where each occupied cell begins in the sorted hash table.

    Runs after grid_keys/grid_values have been sorted by key and cell_start has
    been reset to EMPTY_CELL. Only the first entry of a run of equal keys
    writes, so every slot has a single writer.
    """
    i = wp.tid()
    key = state.grid_keys[i]
    if i == 0:
        state.cell_start[key] = i
    elif key != state.grid_keys[i - 1]:
        state.cell_start[key] = i
