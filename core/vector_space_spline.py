"""
vector_space_spline - R³ 向量空间累积B样条

控制点为三维向量，按普通线性组合求值:
    P(t) = P_0 + Σ_{j=1}^{k-1} B̃_j(u) (P_j - P_{j-1})
与直接加权和 Σ B_j(u) P_j 等价。

实现:
1. 新控制点初始化（最近样本 / 线性外推）
2. 求值与时间导数
3. 带二阶差分正则的线性最小二乘拟合
"""

import logging

import numpy as np

from ..utils.geometry import as_vector3
from .bspline import cumulative_basis_weights, locate_span, uniform_basis_weights
from .spline_base import UniformSpline

logger = logging.getLogger(__name__)


class VectorSpaceSpline(UniformSpline):
    """
    三维向量的均匀累积B样条。

    用法:
        spline = VectorSpaceSpline(4, 0.1)
        spline.add_sample(0.0, [0.0, 0.0, 0.0])
        spline.add_sample(0.25, [1.0, 0.0, 0.0])
        position = spline.evaluate(0.1)
    """

    dimension = 3

    def _validate_value(self, value) -> np.ndarray:
        return as_vector3(value)

    def initial_new_control_point(self):
        """
        为最新节点追加控制点。

        优先取已记录样本中时间距节点最近、且距离小于 Δt 的样本（不一定是
        最近一次加入的样本）；初始的 k 个控制点取离锚点最近的样本。
        否则由最后两个控制点线性外推，只有一个控制点时重复它，
        没有任何数据时为零向量。
        """
        knot = self._pending_knot()
        value = self._seed_from_samples(knot)

        if value is None:
            n = self._num_control_points
            if n >= 2:
                value = 2.0 * self._control_points[n - 1] - self._control_points[n - 2]
            elif n == 1:
                value = self._control_points[0].copy()
            else:
                value = np.zeros(3)

        self._append_control_point(value)

    def _combine(self, control_points: np.ndarray, weights: np.ndarray) -> np.ndarray:
        differences = np.diff(control_points, axis=0)
        return weights[0] * control_points[0] + weights[1:] @ differences

    def evaluate_derivative(self, t: float, order: int = 1) -> np.ndarray:
        """
        对时间的 order 阶导数。

        Args:
            t: 查询时间 (s)
            order: 导数阶数 1..k-1

        Returns:
            (3,) 导数向量
        """
        self._check_derivative(order)
        t = self._check_evaluable(t)
        control_points, u = self._span(t)
        weights = cumulative_basis_weights(u, self.spline_order, order) / self._time_interval**order
        return self._combine(control_points, weights)

    def velocity(self, t: float) -> np.ndarray:
        return self.evaluate_derivative(t, 1)

    def acceleration(self, t: float) -> np.ndarray:
        return self.evaluate_derivative(t, 2)

    def basis_matrix(self, ts) -> np.ndarray:
        """
        样本时间处的基函数矩阵 Φ，使 P(ts) = Φ @ 控制点。

        Args:
            ts: (M,) 可求值时间

        Returns:
            (M, N) 稀疏结构的稠密矩阵，每行 k 个非零元
        """
        N = self._num_control_points
        k = self.spline_order
        Phi = np.zeros((len(ts), N))
        for row, t in enumerate(ts):
            t = self._check_evaluable(t)
            index, u = locate_span(t, self._knots[0], self._time_interval, k, N)
            Phi[row, index : index + k] = uniform_basis_weights(u, k)
        return Phi

    def fit(self, smoothing: float = 1e-6, damping: float = 1e-10):
        """
        用全部样本最小二乘拟合控制点。

        min ||Φ P - Y||² + smoothing·||D₂ P||² + damping·||P - P_init||²

        二阶差分正则对直线（等间距共线控制点）为零，
        小阻尼项使无样本支撑的控制点保持当前值。

        Args:
            smoothing: 二阶差分正则权重
            damping: 阻尼权重

        Returns:
            self
        """
        if not self._sample_times:
            logger.debug("No samples recorded, skipping fit")
            return self

        N = self._num_control_points
        current = self.get_control_points()
        Y = np.array([self._samples[t] for t in self._sample_times])
        Phi = self.basis_matrix(self._sample_times)

        D2 = np.diff(np.eye(N), n=2, axis=0)
        A = np.vstack([Phi, np.sqrt(smoothing) * D2, np.sqrt(damping) * np.eye(N)])
        b = np.vstack([Y, np.zeros((len(D2), 3)), np.sqrt(damping) * current])

        solution, _, rank, _ = np.linalg.lstsq(A, b, rcond=None)
        self._control_points[:N] = solution

        residual = Phi @ solution - Y
        logger.debug(
            "Fitted %d control points to %d samples (rank=%d, rms=%.3e)",
            N,
            len(Y),
            rank,
            np.sqrt(np.mean(np.sum(residual**2, axis=1))),
        )
        return self


if __name__ == "__main__":
    print("=== 向量样条测试 ===")

    spline = VectorSpaceSpline(4, 0.1)
    ts = np.linspace(0.0, 1.0, 51)
    points = np.column_stack([np.cos(ts), np.sin(ts), ts])
    spline.initial_spline(zip(ts, points))
    print(f"控制点数: {spline.get_control_point_num()}")
    spline.print_knots()

    spline.fit()
    errors = np.linalg.norm(spline.evaluate_batch(ts) - points, axis=1)
    print(f"拟合误差: max={errors.max():.2e}, mean={errors.mean():.2e}")
    print(f"t=0.5 速度: {spline.velocity(0.5)}")
