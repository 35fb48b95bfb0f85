"""
quaternion_spline - 单位四元数累积B样条

单位四元数不构成向量空间，累积基函数不能直接线性组合控制点。
对覆盖区间的 k 个控制点 q_0..q_{k-1}:
    φ_j = log(q_{j-1}⁻¹ ⊗ q_j)          (取最短弧)
    q(t) = q_0 ⊗ Π_{j=1}^{k-1} exp(B̃_j(u) φ_j)
乘法从左到右与权重顺序一致，结果重新归一化。

实现:
1. 新控制点初始化（最近样本 / 重复上一个控制点）
2. 求值、时间导数、角速度与角加速度
3. 基于 scipy.optimize.least_squares 的流形拟合
"""

import itertools
import logging
import math

import numpy as np
from scipy.optimize import least_squares
from scipy.sparse import lil_matrix

from ..utils.geometry import (
    IDENTITY_QUATERNION,
    as_quaternion,
    quat_align,
    quat_box_minus,
    quat_conjugate,
    quat_exp,
    quat_multiply,
)
from .bspline import cumulative_basis_weights, locate_span
from .spline_base import UniformSpline

logger = logging.getLogger(__name__)

MAX_DERIVATIVE_ORDER = 3


def _pure(v: np.ndarray) -> np.ndarray:
    """纯四元数 [v, 0]。"""
    return np.array([v[0], v[1], v[2], 0.0])


def _exp_derivatives(phi: np.ndarray, weight_derivatives: list[float], order: int) -> list[np.ndarray]:
    """
    exp(w(t)·φ) 对时间的 0..order 阶导数。

    由于 p_n = [w^{(n)} φ / 2, 0] 两两平行（可交换），
        d/dt   exp = exp ⊗ p_1
        d²/dt² exp = exp ⊗ (p_2 + p_1²)
        d³/dt³ exp = exp ⊗ (p_3 + 3 p_1 p_2 + p_1³)

    Args:
        phi: (3,) 旋转向量
        weight_derivatives: [w, w', w'', ...] 累积权重及其时间导数
        order: 最高导数阶数

    Returns:
        长度 order+1 的四元数列表
    """
    A = quat_exp(weight_derivatives[0] * phi)
    result = [A]
    if order == 0:
        return result

    p = [None] + [_pure(0.5 * weight_derivatives[n] * phi) for n in range(1, order + 1)]
    p1 = p[1]
    p1_sq = quat_multiply(p1, p1)
    result.append(quat_multiply(A, p1))
    if order >= 2:
        result.append(quat_multiply(A, p[2] + p1_sq))
    if order >= 3:
        term = p[3] + 3.0 * quat_multiply(p1, p[2]) + quat_multiply(p1_sq, p1)
        result.append(quat_multiply(A, term))
    return result


class QuaternionSpline(UniformSpline):
    """
    单位四元数 [x, y, z, w] 的均匀累积B样条。

    控制点保持单位长度，且相邻控制点位于同一半球。
    """

    dimension = 4

    def _validate_value(self, value) -> np.ndarray:
        return as_quaternion(value)

    def initial_new_control_point(self):
        """
        为最新节点追加控制点。

        优先取距离节点小于 Δt 的最近样本姿态；否则重复上一个控制点
        （单位增量），没有任何数据时为单位四元数。
        新控制点翻转到与上一个控制点同一半球。
        """
        knot = self._pending_knot()
        value = self._seed_from_samples(knot)
        n = self._num_control_points

        if value is None:
            value = self._control_points[n - 1].copy() if n > 0 else IDENTITY_QUATERNION.copy()
        elif n > 0:
            value = quat_align(value, self._control_points[n - 1])

        self._append_control_point(value / np.linalg.norm(value))

    def _relative_rotations(self, control_points: np.ndarray) -> list[np.ndarray]:
        return [quat_box_minus(control_points[j], control_points[j - 1]) for j in range(1, len(control_points))]

    def _combine(self, control_points: np.ndarray, weights: np.ndarray) -> np.ndarray:
        q = control_points[0].copy()
        for weight, phi in zip(weights[1:], self._relative_rotations(control_points)):
            q = quat_multiply(q, quat_exp(weight * phi))
        return q / np.linalg.norm(q)

    def _evaluate_with(self, control_points: np.ndarray, t: float) -> np.ndarray:
        index, u = locate_span(t, self._knots[0], self._time_interval, self.spline_order, len(control_points))
        weights = cumulative_basis_weights(u, self.spline_order)
        return self._combine(control_points[index : index + self.spline_order], weights)

    def _check_derivative(self, order: int):
        super()._check_derivative(order)
        if order > MAX_DERIVATIVE_ORDER:
            raise ValueError(f"Quaternion derivative order {order} not supported (max {MAX_DERIVATIVE_ORDER})")

    def evaluate_derivative(self, t: float, order: int = 1) -> np.ndarray:
        """
        四元数对时间的 order 阶导数 dⁿq/dtⁿ。

        对有序乘积 Π A_j 使用多项式形式的 Leibniz 公式:
            (Π A_j)^{(n)} = Σ_{Σd_j=n} n!/Π d_j! · Π A_j^{(d_j)}

        Args:
            t: 查询时间 (s)
            order: 导数阶数 1..min(3, k-1)

        Returns:
            (4,) 四元数导数（非单位）
        """
        self._check_derivative(order)
        t = self._check_evaluable(t)
        control_points, u = self._span(t)
        k = self.spline_order
        dt = self._time_interval

        # 每个累积权重对时间的 0..order 阶导数
        weight_table = [cumulative_basis_weights(u, k, n) / dt**n for n in range(order + 1)]
        factors = [
            _exp_derivatives(phi, [weight_table[n][j] for n in range(order + 1)], order)
            for j, phi in enumerate(self._relative_rotations(control_points), start=1)
        ]

        result = np.zeros(4)
        for split in itertools.product(range(order + 1), repeat=k - 1):
            if sum(split) != order:
                continue
            coefficient = math.factorial(order)
            term = control_points[0]
            for factor, d in zip(factors, split):
                coefficient //= math.factorial(d)
                term = quat_multiply(term, factor[d])
            result += coefficient * term
        return result

    def angular_velocity(self, t: float) -> np.ndarray:
        """
        机体系角速度 ω = 2·vec(q⁻¹ ⊗ q̇)。

        Returns:
            (3,) 角速度 (rad/s)
        """
        q = self.evaluate(t)
        q_dot = self.evaluate_derivative(t, 1)
        return 2.0 * quat_multiply(quat_conjugate(q), q_dot)[:3]

    def angular_acceleration(self, t: float) -> np.ndarray:
        """
        机体系角加速度 α = 2·vec(q⁻¹ ⊗ q̈)（q̇* ⊗ q̇ 为实数，不影响虚部）。

        Returns:
            (3,) 角加速度 (rad/s²)
        """
        q = self.evaluate(t)
        q_ddot = self.evaluate_derivative(t, 2)
        return 2.0 * quat_multiply(quat_conjugate(q), q_ddot)[:3]

    def _retract(self, base: np.ndarray, x: np.ndarray) -> np.ndarray:
        """控制点右乘切空间增量 q_i ⊗ exp(δ_i)。"""
        deltas = x.reshape(-1, 3)
        return np.array([quat_multiply(q, quat_exp(d)) for q, d in zip(base, deltas)])

    def fit(self, damping: float = 1e-6, max_nfev: int | None = None):
        """
        流形上的非线性最小二乘拟合。

        min Σ_s ||log(q_s⁻¹ ⊗ q(t_s))||² + damping·Σ_i ||δ_i||²

        每个样本残差只依赖其区间内的 k 个控制点，使用稀疏雅可比结构。

        Args:
            damping: 增量阻尼权重
            max_nfev: 最大函数求值次数

        Returns:
            self
        """
        if not self._sample_times:
            logger.debug("No samples recorded, skipping fit")
            return self

        N = self._num_control_points
        k = self.spline_order
        base = self.get_control_points()
        times = list(self._sample_times)
        targets = [self._samples[t] for t in times]
        spans = [locate_span(t, self._knots[0], self._time_interval, k, N)[0] for t in times]
        sqrt_damping = np.sqrt(damping)

        def residuals(x):
            control_points = self._retract(base, x)
            res = [quat_box_minus(self._evaluate_with(control_points, t), q_s) for t, q_s in zip(times, targets)]
            return np.concatenate([np.concatenate(res), sqrt_damping * x])

        sparsity = lil_matrix((3 * len(times) + 3 * N, 3 * N), dtype=int)
        for row, index in enumerate(spans):
            sparsity[3 * row : 3 * row + 3, 3 * index : 3 * (index + k)] = 1
        offset = 3 * len(times)
        for i in range(3 * N):
            sparsity[offset + i, i] = 1

        result = least_squares(residuals, np.zeros(3 * N), jac_sparsity=sparsity, method="trf", max_nfev=max_nfev)

        control_points = self._retract(base, result.x)
        for i in range(1, N):
            control_points[i] = quat_align(control_points[i], control_points[i - 1])
        self._control_points[:N] = control_points / np.linalg.norm(control_points, axis=1, keepdims=True)

        logger.debug(
            "Fitted %d quaternion control points to %d samples (cost=%.3e, status=%d)",
            N,
            len(times),
            result.cost,
            result.status,
        )
        return self


if __name__ == "__main__":
    from pose_spline.utils.geometry import quat_from_axis_angle

    print("=== 四元数样条测试 ===")

    spline = QuaternionSpline(4, 0.1)
    ts = np.linspace(0.0, 1.0, 41)
    axis = np.array([0.0, 0.0, 1.0])
    samples = [(t, quat_from_axis_angle(axis, 1.5 * t)) for t in ts]
    spline.initial_spline(samples)
    print(f"控制点数: {spline.get_control_point_num()}")

    spline.fit()
    norms = np.linalg.norm(spline.evaluate_batch(ts), axis=1)
    print(f"归一化验证: all ≈ 1.0 = {np.allclose(norms, 1.0)}")
    print(f"t=0.5 角速度: {spline.angular_velocity(0.5)}")
