"""
bspline - 均匀累积B样条基函数工具

供 vector_space_spline 和 quaternion_spline 共用。

实现:
1. 均匀B样条混合权重及其导数（scipy BSpline + 单位系数矩阵）
2. 累积基函数权重 B̃_j(u) = Σ_{s>=j} B_s(u)
3. 均匀节点下的区间定位（直接下标运算）

对 k 阶（k-1 次）样条，区间 [τ_i, τ_{i+1}) 上的值为
    P(u) = P_0 + Σ_{j=1}^{k-1} B̃_j(u) (P_j - P_{j-1}),  u = (t - τ_i) / Δt
其中 P_0..P_{k-1} 为覆盖该区间的 k 个控制点。
"""

import functools
import math

import numpy as np
from scipy.interpolate import BSpline


@functools.lru_cache(maxsize=None)
def _unit_basis_spline(order: int) -> BSpline:
    """
    构造整数节点上的单位系数 B 样条。

    节点 0, 1, ..., 2k-1，次数 k-1，系数为 k×k 单位矩阵，
    于是在 [k-1, k] 上第 j 列即第 j 个控制点的混合权重。
    """
    degree = order - 1
    knots = np.arange(2 * order, dtype=float)
    coeffs = np.eye(order)
    return BSpline(knots, coeffs, degree)


def _check_order(order: int, derivative: int):
    if order < 2:
        raise ValueError(f"Spline order must be >= 2, got {order}")
    if derivative < 0 or derivative > order - 1:
        raise ValueError(f"Derivative {derivative} not supported for order {order}")


def uniform_basis_weights(u: float, order: int, derivative: int = 0) -> np.ndarray:
    """
    均匀B样条在局部参数 u 处的 k 个混合权重（或其对 u 的导数）。

    Args:
        u: 局部参数 [0, 1]
        order: 样条阶数 k
        derivative: 对 u 的导数阶数

    Returns:
        (k,) 权重数组；derivative=0 时各项之和为 1
    """
    _check_order(order, derivative)
    u = min(max(float(u), 0.0), 1.0)
    spline = _unit_basis_spline(order)
    return np.asarray(spline(order - 1 + u, nu=derivative), dtype=float)


def cumulative_basis_weights(u: float, order: int, derivative: int = 0) -> np.ndarray:
    """
    累积基函数权重 B̃_j(u) = Σ_{s=j}^{k-1} B_s(u)。

    B̃_0 恒为 1（导数时为 0），其余项单调地从 0 增长到 1。

    Args:
        u: 局部参数 [0, 1]
        order: 样条阶数 k
        derivative: 对 u 的导数阶数

    Returns:
        (k,) 累积权重数组
    """
    weights = uniform_basis_weights(u, order, derivative)
    cumulative = np.cumsum(weights[::-1])[::-1]
    # 消除数值误差，保证 B̃_0 精确
    cumulative[0] = 1.0 if derivative == 0 else 0.0
    return cumulative


def cumulative_basis_matrix(order: int) -> np.ndarray:
    """
    累积基函数的多项式系数矩阵 C。

    B̃(u) = C @ [1, u, u², ..., u^{k-1}]，
    由 k 个采样点上的权重解 Vandermonde 方程得到。

    Args:
        order: 样条阶数 k

    Returns:
        (k, k) 系数矩阵
    """
    samples = np.linspace(0.0, 1.0, order)
    V = samples[:, np.newaxis] ** np.arange(order)
    W = np.array([cumulative_basis_weights(u, order) for u in samples])
    return np.linalg.solve(V, W).T


def locate_span(t: float, first_knot: float, time_interval: float, order: int, num_control_points: int) -> tuple[int, float]:
    """
    定位查询时间所在的节点区间。

    第 j 个区间以 τ_{j+k-1} 为起点，由控制点 j..j+k-1 决定。

    Args:
        t: 查询时间 (s)
        first_knot: 第一个控制点的节点时间 τ_0
        time_interval: 节点间隔 Δt
        order: 样条阶数 k
        num_control_points: 控制点总数 N

    Returns:
        index: 区间第一个控制点的下标 j ∈ [0, N-k]
        u: 局部参数 [0, 1]
    """
    s = (t - first_knot) / time_interval - (order - 1)
    index = int(math.floor(s))
    index = min(max(index, 0), num_control_points - order)
    u = min(max(s - index, 0.0), 1.0)
    return index, u


if __name__ == "__main__":
    print("=== 累积B样条基函数测试 ===")

    for k in (2, 3, 4, 6):
        w = uniform_basis_weights(0.5, k)
        print(f"k={k}: 混合权重 {np.round(w, 4)}, 和={w.sum():.6f}")
        print(f"      累积权重 {np.round(cumulative_basis_weights(0.5, k), 4)}")

    print(f"三次累积矩阵:\n{np.round(cumulative_basis_matrix(4) * 6, 6)}")
