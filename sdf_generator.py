import numpy as np
import warp as wp

from pbf_utils.structs import *
from sdf_kernels import voxelize, compute_distance, sample_field_points


class SDFGenerator:
    """
    Converts a closed triangle mesh into a voxel signed distance field.

    The field covers the bounding box of the mesh with resolution^3 voxels,
    voxel (x, y, z) sitting at min_bb + (x, y, z) * cell_size. Distances are
    negative inside the mesh and normals point out of the solid.
    """

    def __init__(self, resolution=32, device="cuda:0", degenerate_eps=1e-6):
        if resolution < 2:
            raise ValueError(f"resolution must be at least 2, got {resolution}")
        self.resolution = resolution
        self.device = device
        # triangles whose normal, relative to the mesh extent squared, is shorter than this are dropped
        self.degenerate_eps = degenerate_eps
        self.field = None

    def preprocess_triangles(self, vertices, indices):
        """
        Gather triangle corners, edges and unit normals on the host.

        Args:
            vertices: (V, 3) array of vertex positions
            indices: (T, 3) array of vertex indices per triangle

        Returns:
            (MeshStruct, min_bb, max_bb) built from the non-degenerate triangles
        """
        vertices = np.asarray(vertices, dtype=np.float64)
        indices = np.asarray(indices, dtype=np.int64)
        if vertices.ndim != 2 or vertices.shape[1] != 3:
            raise ValueError(f"Vertices must have shape (V, 3), got {vertices.shape}")
        if indices.ndim != 2 or indices.shape[1] != 3:
            raise ValueError(f"Indices must have shape (T, 3), got {indices.shape}")
        if indices.size and (indices.min() < 0 or indices.max() >= vertices.shape[0]):
            raise ValueError("Triangle indices out of range")

        v0 = vertices[indices[:, 0]]
        v1 = vertices[indices[:, 1]]
        v2 = vertices[indices[:, 2]]
        normal = np.cross(v1 - v0, v2 - v0)
        normal_len = np.linalg.norm(normal, axis=1)

        extent = np.ptp(vertices, axis=0).max() if vertices.size else 0.0
        keep = normal_len > self.degenerate_eps * max(extent, 1e-12) ** 2
        if not np.any(keep):
            raise ValueError("Mesh has no non-degenerate triangle")
        v0, v1, v2 = v0[keep], v1[keep], v2[keep]
        normal = normal[keep] / normal_len[keep][:, None]

        corners = np.concatenate([v0, v1, v2])
        min_bb = corners.min(axis=0)
        max_bb = corners.max(axis=0)
        # flat meshes still need a volume to sample
        pad = np.where(max_bb - min_bb < 1e-6 * max(extent, 1e-6), 0.01 * max(extent, 1e-2), 0.0)
        min_bb = min_bb - pad
        max_bb = max_bb + pad

        def to_wp(a):
            return wp.array(a.astype(np.float32), dtype=wp.vec3, device=self.device)

        mesh = MeshStruct()
        mesh.v0 = to_wp(v0)
        mesh.v1 = to_wp(v1)
        mesh.v2 = to_wp(v2)
        mesh.v10 = to_wp(v1 - v0)
        mesh.v21 = to_wp(v2 - v1)
        mesh.v02 = to_wp(v0 - v2)
        mesh.normal = to_wp(normal)
        mesh.n_triangles = int(v0.shape[0])
        return mesh, min_bb, max_bb

    def allocate_field(self, min_bb, max_bb, resolution=None):
        res = self.resolution if resolution is None else resolution
        min_bb = np.asarray(min_bb, dtype=np.float64)
        max_bb = np.asarray(max_bb, dtype=np.float64)
        field = FieldStruct()
        field.resolution = res
        field.min_bb = wp.vec3(*min_bb.astype(np.float32))
        field.max_bb = wp.vec3(*max_bb.astype(np.float32))
        field.cell_size = wp.vec3(*((max_bb - min_bb) / (res - 1)).astype(np.float32))
        field.distance = wp.zeros(res ** 3, dtype=float, device=self.device)
        field.normal = wp.zeros(res ** 3, dtype=wp.vec3, device=self.device)
        field.inside = wp.zeros(res ** 3, dtype=wp.int32, device=self.device)
        return field

    def generate(self, vertices, indices):
        """Voxelize the mesh and compute the signed distance of every voxel."""
        mesh, min_bb, max_bb = self.preprocess_triangles(vertices, indices)
        field = self.allocate_field(min_bb, max_bb)
        res = self.resolution

        wp.launch(
            kernel=voxelize,
            dim=(res, res, res),
            inputs=[field, mesh],
            device=self.device,
        )
        wp.launch(
            kernel=compute_distance,
            dim=(res, res, res),
            inputs=[field, mesh],
            device=self.device,
        )
        print(f"SDF generated: {mesh.n_triangles} triangles, {res}^3 voxels")
        self.field = field
        return field

    def from_arrays(self, distance, normal, inside, min_bb, max_bb):
        """
        Wrap precomputed voxel data in a FieldStruct.

        Args:
            distance: (res, res, res) signed distances
            normal: (res, res, res, 3) outward normals
            inside: (res, res, res) 0/1 flags
        """
        distance = np.asarray(distance, dtype=np.float32)
        res = distance.shape[0]
        if distance.shape != (res, res, res) or res < 2:
            raise ValueError(f"distance must have shape (res, res, res) with res >= 2, got {distance.shape}")
        normal = np.asarray(normal, dtype=np.float32)
        if normal.shape != (res, res, res, 3):
            raise ValueError(f"normal must have shape {(res, res, res, 3)}, got {normal.shape}")
        inside = np.asarray(inside, dtype=np.int32)
        if inside.shape != (res, res, res):
            raise ValueError(f"inside must have shape {(res, res, res)}, got {inside.shape}")

        field = self.allocate_field(min_bb, max_bb, resolution=res)
        field.distance = wp.array(distance.reshape(-1), dtype=float, device=self.device)
        field.normal = wp.array(normal.reshape(-1, 3), dtype=wp.vec3, device=self.device)
        field.inside = wp.array(inside.reshape(-1), dtype=wp.int32, device=self.device)
        self.field = field
        return field

    def sample(self, points, field=None):
        """
        Query the field at local points.

        Returns:
            (distances (n,), normals (n, 3), inside (n,) bool) as numpy arrays.
            inside is the sign of the interpolated distance, not the voxel
            inside flags; the two agree for closed meshes.
        """
        field = field if field is not None else self.field
        if field is None:
            raise ValueError("No field: call generate() first")
        points = np.asarray(points, dtype=np.float32).reshape(-1, 3)
        n = points.shape[0]
        distances = wp.zeros(n, dtype=float, device=self.device)
        normals = wp.zeros(n, dtype=wp.vec3, device=self.device)
        if n > 0:
            wp.launch(
                kernel=sample_field_points,
                dim=n,
                inputs=[field, wp.array(points, dtype=wp.vec3, device=self.device), distances, normals],
                device=self.device,
            )
        d = distances.numpy()
        return d, normals.numpy(), d < 0.0

    @staticmethod
    def export_field(field):
        """Voxel data as numpy arrays shaped by the grid."""
        res = field.resolution
        return {
            "distance": field.distance.numpy().reshape(res, res, res),
            "normal": field.normal.numpy().reshape(res, res, res, 3),
            "inside": field.inside.numpy().reshape(res, res, res),
            "min_bb": np.array(field.min_bb),
            "max_bb": np.array(field.max_bb),
        }
