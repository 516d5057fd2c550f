"""
Obstacle meshes and their world transforms.
"""
import numpy as np

# outward facing, counter-clockwise winding
_BOX_TRIANGLES = np.array([
    [0, 2, 1], [0, 3, 2],  # -z
    [4, 5, 6], [4, 6, 7],  # +z
    [0, 1, 5], [0, 5, 4],  # -y
    [3, 7, 6], [3, 6, 2],  # +y
    [0, 4, 7], [0, 7, 3],  # -x
    [1, 2, 6], [1, 6, 5],  # +x
], dtype=np.int32)


def box_mesh(center, size):
    """Closed triangle mesh of an axis-aligned box. Returns (vertices (8, 3), indices (12, 3))."""
    center = np.asarray(center, dtype=np.float32)
    half = 0.5 * np.asarray(size, dtype=np.float32)
    corners = np.array([
        [-1, -1, -1], [1, -1, -1], [1, 1, -1], [-1, 1, -1],
        [-1, -1, 1], [1, -1, 1], [1, 1, 1], [-1, 1, 1],
    ], dtype=np.float32)
    return center + corners * half, _BOX_TRIANGLES.copy()


def mesh_from_dict(data):
    """
    Build a mesh from its scene description, either
    {"type": "box", "center": [...], "size": [...]} or
    {"vertices": [[x, y, z], ...], "indices": [[a, b, c], ...]}.
    """
    if data.get("type") == "box":
        return box_mesh(data.get("center", [0.0, 0.0, 0.0]), data.get("size", [1.0, 1.0, 1.0]))
    if "vertices" in data and "indices" in data:
        return (np.asarray(data["vertices"], dtype=np.float32),
                np.asarray(data["indices"], dtype=np.int32))
    raise ValueError(f"Cannot build an obstacle mesh from keys {sorted(data)}")


def rotation_matrix(axis, angle_degrees):
    axis = np.asarray(axis, dtype=np.float64)
    norm = np.linalg.norm(axis)
    if norm < 1e-12 or angle_degrees == 0.0:
        return np.eye(3)
    x, y, z = axis / norm
    theta = np.radians(angle_degrees)
    c, s = np.cos(theta), np.sin(theta)
    K = np.array([[0.0, -z, y], [z, 0.0, -x], [-y, x, 0.0]])
    return np.eye(3) + s * K + (1.0 - c) * (K @ K)


def local_to_world_matrix(translation=(0.0, 0.0, 0.0), rotation_axis=(0.0, 1.0, 0.0),
                          rotation_angle=0.0, scale=1.0):
    """4x4 matrix mapping obstacle-local points to world space (scale, then rotate, then translate)."""
    m = np.eye(4)
    m[:3, :3] = rotation_matrix(rotation_axis, rotation_angle) * float(scale)
    m[:3, 3] = np.asarray(translation, dtype=np.float64)
    return m
