import logging

import numpy as np
import trimesh

from heightgen.errors import InvalidInput

logger = logging.getLogger(__name__)


def height_to_mesh(heights, scale=1.0):
    """
    Relief preview mesh of a height grid.

    One vertex per texel at (x, height * scale, y), i.e. Y is elevation, and
    two triangles per quad of neighbouring texels.
    """
    if heights.channels is not None:
        raise InvalidInput("Relief meshes need a scalar height grid")
    w, h = heights.width, heights.height
    if w < 2 or h < 2:
        raise InvalidInput(f"A relief mesh needs at least 2x2 texels, got {w}x{h}")

    # Vertex k is texel k, so vertex indices follow the grid's y * w + x order
    ys, xs = np.mgrid[0:h, 0:w]
    vertices = np.column_stack([xs.ravel(), heights.data * scale, ys.ravel()]).astype(np.float64)

    index = np.arange(w * h).reshape(h, w)
    v1 = index[:-1, :-1].ravel()  # (x, y)
    v2 = index[:-1, 1:].ravel()   # (x + 1, y)
    v3 = index[1:, :-1].ravel()   # (x, y + 1)
    v4 = index[1:, 1:].ravel()    # (x + 1, y + 1)
    faces = np.concatenate([
        np.column_stack([v1, v2, v3]),  # Triangle 1
        np.column_stack([v2, v4, v3]),  # Triangle 2
    ])

    # process=False keeps vertex order (and thus texel order) intact
    mesh = trimesh.Trimesh(vertices=vertices, faces=faces, process=False)
    logger.debug(f"Relief mesh built: {len(vertices)} vertices, {len(faces)} faces")
    return mesh


def export_obj(mesh):
    return mesh.export(file_type="obj")
