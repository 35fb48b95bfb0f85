"""
geometry - 四元数与 SO(3) 几何工具函数

四元数统一采用 Hamilton 约定、标量在后的存储顺序 [x, y, z, w]，
与 scipy.spatial.transform.Rotation 保持一致。

提供:
1. 向量/四元数归一化
2. 四元数乘法、共轭、求逆
3. 对数映射 / 指数映射（旋转向量 <-> 单位四元数），小角度使用泰勒展开
4. 双覆盖一致化（最短弧）
5. 四元数转旋转矩阵
"""

import numpy as np

EPSILON = 1e-16
SMALL_ANGLE_THRESHOLD = 1e-6  # 低于该角度时使用泰勒展开

IDENTITY_QUATERNION = np.array([0.0, 0.0, 0.0, 1.0])


def normalize(vectors: np.ndarray) -> np.ndarray:
    """
    将向量归一化为单位向量。

    Args:
        vectors: 单个向量 (n,) 或向量数组 (m, n)

    Returns:
        归一化后的单位向量，与输入形状相同
    """
    vectors = np.asarray(vectors, dtype=float)
    if vectors.ndim == 1:
        norm = np.linalg.norm(vectors)
        return vectors / (norm + EPSILON)
    norm = np.linalg.norm(vectors, axis=-1, keepdims=True)
    return vectors / (norm + EPSILON)


def as_vector3(v) -> np.ndarray:
    """
    校验三维向量输入（形状 (3,) 且各分量有限）。

    Raises:
        ValueError: 形状不对或含非有限值
    """
    v = np.array(v, dtype=float)
    if v.shape != (3,):
        raise ValueError(f"Vector sample must have shape (3,), got {v.shape}")
    if not np.all(np.isfinite(v)):
        raise ValueError(f"Vector sample must be finite, got {v}")
    return v


def as_quaternion(q) -> np.ndarray:
    """
    校验并归一化四元数输入。

    Args:
        q: 长度为 4 的序列 [x, y, z, w]

    Returns:
        (4,) 单位四元数

    Raises:
        ValueError: 形状不对或范数为零
    """
    q = np.asarray(q, dtype=float)
    if q.shape != (4,):
        raise ValueError(f"Quaternion must have shape (4,), got {q.shape}")
    norm = np.linalg.norm(q)
    if not np.isfinite(norm) or norm < 1e-12:
        raise ValueError(f"Quaternion {q} cannot be normalized")
    return q / norm


def quat_multiply(q1: np.ndarray, q2: np.ndarray) -> np.ndarray:
    """
    Hamilton 四元数乘法 q1 ⊗ q2。

    Args:
        q1: (4,) 四元数 [x, y, z, w]
        q2: (4,) 四元数 [x, y, z, w]

    Returns:
        (4,) 乘积四元数
    """
    v1, w1 = q1[:3], q1[3]
    v2, w2 = q2[:3], q2[3]
    result = np.empty(4)
    result[:3] = w1 * v2 + w2 * v1 + np.cross(v1, v2)
    result[3] = w1 * w2 - np.dot(v1, v2)
    return result


def quat_conjugate(q: np.ndarray) -> np.ndarray:
    """四元数共轭。"""
    return np.array([-q[0], -q[1], -q[2], q[3]])


def quat_inverse(q: np.ndarray) -> np.ndarray:
    """四元数求逆。单位四元数的逆即共轭。"""
    return quat_conjugate(q) / np.dot(q, q)


def quat_positive(q: np.ndarray) -> np.ndarray:
    """
    取双覆盖中标量部分非负的代表元。

    q 与 -q 表示同一旋转；标量部分非负时，对数映射得到的旋转角不超过 π，
    即沿最短弧插值。
    """
    return -q if q[3] < 0 else q


def quat_align(q: np.ndarray, reference: np.ndarray) -> np.ndarray:
    """将 q 翻转到与 reference 同一半球（点积非负）。"""
    return -q if np.dot(q, reference) < 0 else q


def quat_exp(rotation_vector: np.ndarray) -> np.ndarray:
    """
    指数映射：旋转向量 φ = θ·n -> 单位四元数。

    q = [sin(θ/2)·n, cos(θ/2)]

    θ 很小时 sin(θ/2)/θ 使用泰勒展开 1/2 - θ²/48，避免除以接近零的数。

    Args:
        rotation_vector: (3,) 旋转向量 (rad)

    Returns:
        (4,) 单位四元数
    """
    phi = np.asarray(rotation_vector, dtype=float)
    theta = np.linalg.norm(phi)
    half = 0.5 * theta

    if theta < SMALL_ANGLE_THRESHOLD:
        scale = 0.5 - theta * theta / 48.0
        w = 1.0 - theta * theta / 8.0
    else:
        scale = np.sin(half) / theta
        w = np.cos(half)

    q = np.empty(4)
    q[:3] = scale * phi
    q[3] = w
    return q / np.linalg.norm(q)


def quat_log(q: np.ndarray) -> np.ndarray:
    """
    对数映射：单位四元数 -> 旋转向量 φ = θ·n。

    使用 atan2 计算半角以保证数值稳定；虚部很小时
    θ/sin(θ/2) 使用泰勒展开 2 + θ²/12 (θ ≈ 2·|v|/w)。
    调用方负责最短弧选取（见 quat_positive）。

    Args:
        q: (4,) 单位四元数

    Returns:
        (3,) 旋转向量
    """
    v = np.asarray(q[:3], dtype=float)
    w = float(q[3])
    sin_half = np.linalg.norm(v)

    if sin_half < SMALL_ANGLE_THRESHOLD:
        # sin(θ/2) ≈ θ/2，w ≈ 1
        inv_w = 1.0 / w if abs(w) > EPSILON else 0.0
        return 2.0 * inv_w * (1.0 - sin_half * sin_half / 3.0 * inv_w * inv_w) * v

    half = np.arctan2(sin_half, w)
    return (2.0 * half / sin_half) * v


def quat_box_minus(q1: np.ndarray, q2: np.ndarray) -> np.ndarray:
    """
    流形上的差：log(q2⁻¹ ⊗ q1)，取最短弧。

    Returns:
        (3,) 从 q2 旋转到 q1 的旋转向量（q2 的局部坐标系）
    """
    return quat_log(quat_positive(quat_multiply(quat_conjugate(q2), q1)))


def quat_to_matrix(q: np.ndarray) -> np.ndarray:
    """
    单位四元数转 3x3 旋转矩阵。

    Args:
        q: (4,) 单位四元数 [x, y, z, w]

    Returns:
        (3, 3) 旋转矩阵
    """
    x, y, z, w = normalize(q)
    return np.array([
        [1 - 2 * (y * y + z * z), 2 * (x * y - z * w), 2 * (x * z + y * w)],
        [2 * (x * y + z * w), 1 - 2 * (x * x + z * z), 2 * (y * z - x * w)],
        [2 * (x * z - y * w), 2 * (y * z + x * w), 1 - 2 * (x * x + y * y)],
    ])


def quat_from_axis_angle(axis: np.ndarray, angle: float) -> np.ndarray:
    """由旋转轴和旋转角构造单位四元数。"""
    return quat_exp(normalize(axis) * angle)


if __name__ == "__main__":
    print("=== 四元数工具测试 ===")

    q = quat_from_axis_angle(np.array([0.0, 0.0, 1.0]), np.pi / 2)
    print(f"绕z轴90°: {q}")
    print(f"  对数映射: {quat_log(q)}")
    print(f"  往返误差: {np.linalg.norm(quat_exp(quat_log(q)) - q):.2e}")

    tiny = quat_exp(np.array([1e-9, 0.0, 0.0]))
    print(f"微小旋转: {tiny}")
    print(f"  对数映射: {quat_log(tiny)}")

    R = quat_to_matrix(q)
    print(f"旋转矩阵:\n{R}")
