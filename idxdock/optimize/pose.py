from __future__ import annotations

import copy
import math

import numpy as np


def rotation_matrix(rotvec) -> np.ndarray:
    """Rodrigues: rotation of |v| radians about v / |v|."""
    v = np.asarray(rotvec, dtype=float).reshape(3)
    theta = float(np.linalg.norm(v))
    if theta < 1e-12:
        return np.eye(3)
    kx, ky, kz = v / theta
    K = np.array([[0.0, -kz, ky], [kz, 0.0, -kx], [-ky, kx, 0.0]], dtype=float)
    return np.eye(3) + math.sin(theta) * K + (1.0 - math.cos(theta)) * (K @ K)


def rotvec_from_matrix(R) -> np.ndarray:
    R = np.asarray(R, dtype=float).reshape(3, 3)
    c = max(-1.0, min(1.0, 0.5 * (float(np.trace(R)) - 1.0)))
    angle = math.acos(c)
    if angle < 1e-8:
        return np.zeros(3, dtype=float)
    if math.pi - angle < 1e-6:
        # axis from the dominant column of (R + I) / 2
        M = 0.5 * (R + np.eye(3))
        k = int(np.argmax(np.diag(M)))
        axis = M[:, k] / math.sqrt(max(M[k, k], 1e-12))
        return axis / np.linalg.norm(axis) * angle
    w = np.array([R[2, 1] - R[1, 2], R[0, 2] - R[2, 0], R[1, 0] - R[0, 1]], dtype=float)
    return w / (2.0 * math.sin(angle)) * angle


def wrap_rotvec(rotvec) -> np.ndarray:
    """Equivalent rotation vector with angle in [0, pi]."""
    v = np.asarray(rotvec, dtype=float).reshape(3)
    theta = float(np.linalg.norm(v))
    if theta <= math.pi:
        return v.copy()
    return rotvec_from_matrix(rotation_matrix(v))


def random_unit_vector(rng: np.random.Generator) -> np.ndarray:
    while True:
        v = rng.normal(size=3)
        n = float(np.linalg.norm(v))
        if n > 1e-12:
            return v / n


def random_rotvec(rng: np.random.Generator) -> np.ndarray:
    """Uniformly distributed orientation (Shoemake quaternion sampling)."""
    u1, u2, u3 = rng.random(3)
    a = math.sqrt(1.0 - u1)
    b = math.sqrt(u1)
    w = a * math.sin(2.0 * math.pi * u2)
    xyz = np.array([a * math.cos(2.0 * math.pi * u2), b * math.sin(2.0 * math.pi * u3), b * math.cos(2.0 * math.pi * u3)])
    if w < 0.0:
        w, xyz = -w, -xyz
    angle = 2.0 * math.acos(min(1.0, w))
    s = math.sin(0.5 * angle)
    if s < 1e-12:
        return np.zeros(3, dtype=float)
    return xyz / s * angle


def kabsch(ref_xyz: np.ndarray, xyz: np.ndarray) -> np.ndarray:
    """Rotation R minimising |R @ ref - xyz| for two centred coordinate sets."""
    H = ref_xyz.T @ xyz
    U, _, Vt = np.linalg.svd(H)
    d = np.sign(np.linalg.det(Vt.T @ U.T))
    D = np.diag([1.0, 1.0, d if d != 0.0 else 1.0])
    return Vt.T @ D @ U.T


class Pose:
    """
    Rigid body pose:
    - translation t [Å] : position of the reference frame origin
    - rotation vector   : axis * angle (radians) about the reference frame origin

    Reference coordinates are stored CENTERED at the centroid, and t starts at
    the original centroid, so the pose reproduces the input geometry when the
    rotation is zero.
    """

    def __init__(self, coords):
        xyz = np.array(coords, dtype=float).reshape(-1, 3)
        centroid = xyz.mean(axis=0) if xyz.shape[0] else np.zeros(3, dtype=float)

        self.ref_xyz = xyz - centroid
        self.t = centroid.copy()
        self.rot = np.zeros(3, dtype=float)

    def copy(self):
        return copy.deepcopy(self)

    def rotation_matrix(self):
        return rotation_matrix(self.rot)

    def transformed_centroid(self):
        # Since ref coordinates are centered, centroid is translation
        return self.t.copy()

    def transformed_xyz(self) -> np.ndarray:
        return self.ref_xyz @ self.rotation_matrix().T + self.t

    def fit(self, xyz) -> None:
        """Set t / rot to the best rigid fit of the reference onto ``xyz``."""
        xyz = np.asarray(xyz, dtype=float).reshape(-1, 3)
        c = xyz.mean(axis=0)
        self.t = c
        self.rot = rotvec_from_matrix(kabsch(self.ref_xyz, xyz - c)) if xyz.shape[0] > 1 else np.zeros(3)
