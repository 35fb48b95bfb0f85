"""
spline_base - 均匀累积B样条的节点与控制点管理

UniformSpline 维护:
1. 等间隔节点序列 τ_i = τ_{k-1} + (i - k + 1)·Δt，每个控制点对应一个节点
2. 只追加的控制点序列（连续数组，容量倍增）
3. 按时间排序、键唯一的观测样本表

可求值区间为闭区间 [τ_{k-1}, τ_{N-1}]。具体的控制点类型、
组合规则和新控制点的初始化由子类决定。
"""

import bisect
import logging
import math
import sys
from abc import ABC, abstractmethod

import numpy as np

from .bspline import cumulative_basis_weights, locate_span

logger = logging.getLogger(__name__)

# 节点比较的相对容差（相对 Δt）
KNOT_TOLERANCE = 1e-9


class SplineError(Exception):
    """样条相关错误的基类。"""


class SplineConfigurationError(SplineError, ValueError):
    """阶数或节点间隔配置非法，或在初始化之后修改配置。"""


class SplineStateError(SplineError, RuntimeError):
    """操作与样条当前生命周期状态不符。"""


class TimeOutOfRangeError(SplineError, ValueError):
    """时间超出可表示/可求值范围。"""


class UniformSpline(ABC):
    """
    均匀累积B样条的抽象基类。

    Attributes:
        spline_order: 样条阶数 k（次数为 k-1）
        dimension: 控制点存储维度，由子类给出
    """

    dimension: int = 0

    def __init__(self, spline_order: int, time_interval: float | None = None):
        """
        Args:
            spline_order: 样条阶数 k >= 2
            time_interval: 节点间隔 Δt (s)，可稍后通过 set_time_interval 设置
        """
        if isinstance(spline_order, bool) or not isinstance(spline_order, (int, np.integer)) or spline_order < 2:
            raise SplineConfigurationError(f"Spline order must be an integer >= 2, got {spline_order!r}")
        self.spline_order = int(spline_order)
        self._time_interval: float | None = None

        self._anchor: float | None = None
        self._knots: list[float] = []
        self._control_points = np.empty((0, self.dimension))
        self._num_control_points = 0

        self._sample_times: list[float] = []
        self._samples: dict[float, np.ndarray] = {}

        if time_interval is not None:
            self.set_time_interval(time_interval)

    # ------------------------------------------------------------------
    # 配置
    # ------------------------------------------------------------------

    def set_time_interval(self, time_interval: float):
        """设置节点间隔 Δt。必须为正，且只能在初始化之前设置。"""
        if self.is_initialized:
            raise SplineConfigurationError("Time interval cannot be changed after the knots are initialized")
        dt = float(time_interval)
        if not math.isfinite(dt) or dt <= 0:
            raise SplineConfigurationError(f"Time interval must be positive, got {time_interval!r}")
        self._time_interval = dt

    def get_time_interval(self) -> float | None:
        return self._time_interval

    @property
    def is_initialized(self) -> bool:
        return self._anchor is not None

    def _require_time_interval(self) -> float:
        if self._time_interval is None:
            raise SplineConfigurationError("Time interval must be set before the spline is initialized")
        return self._time_interval

    # ------------------------------------------------------------------
    # 节点管理
    # ------------------------------------------------------------------

    def initial_spline_knot(self, t: float):
        """
        以 t 为第一个可求值时间初始化节点。

        生成节点 t-(k-1)Δt, ..., t-Δt, t 及对应的 k 个控制点。
        每个样条只能调用一次。
        """
        dt = self._require_time_interval()
        if self.is_initialized:
            raise SplineStateError("Spline knots are already initialized")
        t = float(t)

        self._anchor = t
        self._reserve(self.spline_order)
        for _ in range(self.spline_order):
            self._append_knot()

        logger.debug("Initialized %s: order=%d, dt=%g, anchor=%g", type(self).__name__, self.spline_order, dt, t)

    def _next_knot(self) -> float:
        index = len(self._knots) - (self.spline_order - 1)
        return self._anchor + index * self._time_interval

    def _append_knot(self):
        """追加一个节点并初始化对应控制点。"""
        self._knots.append(self._next_knot())
        self.initial_new_control_point()
        if self._num_control_points != len(self._knots):
            raise SplineStateError(
                f"{type(self).__name__}.initial_new_control_point() must append exactly one control point"
            )

    def get_knots(self) -> np.ndarray:
        """每个控制点对应的节点时间 τ_0..τ_{N-1}。"""
        return np.array(self._knots)

    @property
    def knot_vector(self) -> np.ndarray:
        """完整B样条节点向量，长度为 N + k。"""
        if not self.is_initialized:
            return np.empty(0)
        k = self.spline_order
        indices = np.arange(self._num_control_points + k) - (k - 1)
        return self._anchor + indices * self._time_interval

    def get_evaluable_range(self) -> tuple[float, float] | None:
        if not self.is_initialized:
            return None
        return self._knots[self.spline_order - 1], self._knots[-1]

    def is_ts_evaluable(self, t: float) -> bool:
        """t 是否落在可求值闭区间 [τ_{k-1}, τ_{N-1}] 内。"""
        if not self.is_initialized:
            return False
        t = float(t)
        tol = KNOT_TOLERANCE * self._time_interval
        start, end = self.get_evaluable_range()
        return start - tol <= t <= end + tol

    def print_knots(self, stream=None):
        """输出节点序列（仅用于调试）。"""
        stream = stream if stream is not None else sys.stdout
        print(f"{type(self).__name__}: order={self.spline_order}, dt={self._time_interval}, knots={len(self._knots)}", file=stream)
        for i, knot in enumerate(self._knots):
            print(f"  knot[{i}] = {knot:.9f}", file=stream)

    # ------------------------------------------------------------------
    # 控制点
    # ------------------------------------------------------------------

    def _reserve(self, capacity: int):
        if capacity <= len(self._control_points):
            return
        buffer = np.empty((capacity, self.dimension))
        buffer[: self._num_control_points] = self._control_points[: self._num_control_points]
        self._control_points = buffer

    def _append_control_point(self, value: np.ndarray):
        if self._num_control_points == len(self._control_points):
            self._reserve(max(2 * self._num_control_points, self.spline_order))
        self._control_points[self._num_control_points] = value
        self._num_control_points += 1

    def _check_index(self, i: int) -> int:
        if isinstance(i, bool) or not isinstance(i, (int, np.integer)):
            raise TypeError(f"Control point index must be an integer, got {type(i).__name__}")
        if not 0 <= i < self._num_control_points:
            raise IndexError(f"Control point index {i} out of range [0, {self._num_control_points})")
        return int(i)

    def get_control_point_num(self) -> int:
        return self._num_control_points

    def get_control_point(self, i: int) -> np.ndarray:
        return self._control_points[self._check_index(i)].copy()

    def get_control_points(self) -> np.ndarray:
        """(N, dimension) 控制点数组副本。"""
        return self._control_points[: self._num_control_points].copy()

    def set_control_point(self, i: int, value):
        self._control_points[self._check_index(i)] = self._validate_value(value)

    def _pending_knot(self) -> float:
        """等待控制点的最新节点。"""
        if len(self._knots) != self._num_control_points + 1:
            raise SplineStateError("No knot is waiting for a control point")
        return self._knots[-1]

    @abstractmethod
    def initial_new_control_point(self):
        """在序列末尾追加恰好一个控制点（对应最新的节点）。"""

    # ------------------------------------------------------------------
    # 样本
    # ------------------------------------------------------------------

    @abstractmethod
    def _validate_value(self, value) -> np.ndarray:
        """校验并规范化一个样本/控制点值。"""

    def _record_sample(self, t: float, value: np.ndarray):
        if t not in self._samples:
            bisect.insort(self._sample_times, t)
        self._samples[t] = value

    def get_sample_num(self) -> int:
        return len(self._sample_times)

    def get_samples(self) -> list[tuple[float, np.ndarray]]:
        """按时间排序的 (t, value) 列表。"""
        return [(t, self._samples[t].copy()) for t in self._sample_times]

    def _nearest_sample(self, t: float) -> tuple[float, np.ndarray] | None:
        if not self._sample_times:
            return None
        i = bisect.bisect_left(self._sample_times, t)
        candidates = self._sample_times[max(i - 1, 0) : i + 1]
        nearest = min(candidates, key=lambda ts: abs(ts - t))
        return nearest, self._samples[nearest]

    def _seed_from_samples(self, knot: float) -> np.ndarray | None:
        """
        新控制点的样本初值。

        距离节点小于 Δt 的最近样本；初始的 k 个控制点（节点不晚于锚点）
        不限距离，取最近样本。没有合适样本时返回 None。
        """
        nearest = self._nearest_sample(knot)
        if nearest is None:
            return None
        ts, value = nearest
        tol = KNOT_TOLERANCE * self._time_interval
        if abs(ts - knot) < self._time_interval or knot <= self._anchor + tol:
            return value.copy()
        return None

    def _as_timestamp(self, t) -> float:
        t = float(t)
        if not math.isfinite(t):
            raise TimeOutOfRangeError(f"Sample time must be finite, got {t}")
        return t

    def add_sample(self, t: float, value) -> int:
        """
        记录一个样本，并按需向后扩展节点直到 t 可求值。

        Args:
            t: 时间戳（可转换为浮点秒）
            value: 样本值

        Returns:
            新追加的控制点个数

        Raises:
            TimeOutOfRangeError: t 不是有限值，或早于第一个可求值时间
        """
        t = self._as_timestamp(t)
        value = self._validate_value(value)

        if not self.is_initialized:
            self._require_time_interval()
            self._record_sample(t, value)
            self.initial_spline_knot(t)
            return self._num_control_points

        start, _ = self.get_evaluable_range()
        if t < start - KNOT_TOLERANCE * self._time_interval:
            raise TimeOutOfRangeError(f"Sample time {t} precedes the spline origin {start}")

        self._record_sample(t, value)
        return self._extend_to(t)

    def _extend_to(self, t: float) -> int:
        added = 0
        while not self.is_ts_evaluable(t):
            self._append_knot()
            added += 1
        if added:
            logger.debug("Extended %s by %d control points to t=%g", type(self).__name__, added, self._knots[-1])
        return added

    def initial_spline(self, samples):
        """
        批量加载样本。

        以最早的样本时间初始化节点，其余样本按时间顺序逐个加入，
        结果与逐个调用 add_sample 相同。所有样本先校验，任何一个非法时不修改状态。

        Args:
            samples: (t, value) 序列
        """
        batch = sorted(((self._as_timestamp(t), self._validate_value(v)) for t, v in samples), key=lambda s: s[0])
        if not batch:
            raise ValueError("initial_spline() requires at least one sample")
        num_samples = len(batch)

        t_first, t_last = batch[0][0], batch[-1][0]
        if self.is_initialized:
            start, _ = self.get_evaluable_range()
            if t_first < start - KNOT_TOLERANCE * self._time_interval:
                raise TimeOutOfRangeError(f"Sample time {t_first} precedes the spline origin {start}")

        dt = self._require_time_interval()
        if not self.is_initialized:
            self._reserve(self.spline_order + int(math.ceil((t_last - t_first) / dt)) + 1)
            self._record_sample(*batch[0])
            self.initial_spline_knot(t_first)
            batch = batch[1:]
        else:
            self._reserve(self._num_control_points + max(0, int(math.ceil((t_last - self._knots[-1]) / dt))) + 1)

        for t, value in batch:
            self._record_sample(t, value)
            self._extend_to(t)

        logger.debug("Loaded %d samples into %s, %d control points", num_samples, type(self).__name__, self._num_control_points)

    # ------------------------------------------------------------------
    # 求值
    # ------------------------------------------------------------------

    def _check_evaluable(self, t) -> float:
        t = float(t)
        if not self.is_ts_evaluable(t):
            raise TimeOutOfRangeError(f"Time {t} is outside the evaluable range {self.get_evaluable_range()}")
        return t

    def _span(self, t: float) -> tuple[np.ndarray, float]:
        """返回覆盖 t 的 k 个控制点及局部参数 u。"""
        index, u = locate_span(t, self._knots[0], self._time_interval, self.spline_order, self._num_control_points)
        return self._control_points[index : index + self.spline_order], u

    def _check_derivative(self, order: int):
        if isinstance(order, bool) or not isinstance(order, (int, np.integer)):
            raise ValueError(f"Derivative order must be an integer, got {order!r}")
        if not 1 <= order <= self.spline_order - 1:
            raise ValueError(f"Derivative order {order} not supported for spline order {self.spline_order}")

    @abstractmethod
    def _combine(self, control_points: np.ndarray, weights: np.ndarray) -> np.ndarray:
        """用累积权重组合 k 个控制点。"""

    def evaluate(self, t: float) -> np.ndarray:
        """
        在时间 t 处求值。

        Raises:
            TimeOutOfRangeError: t 不在可求值区间内
        """
        t = self._check_evaluable(t)
        control_points, u = self._span(t)
        return self._combine(control_points, cumulative_basis_weights(u, self.spline_order))

    def evaluate_batch(self, ts) -> np.ndarray:
        return np.array([self.evaluate(t) for t in ts])

    @abstractmethod
    def evaluate_derivative(self, t: float, order: int = 1) -> np.ndarray:
        """对时间的 order 阶导数。"""

    @abstractmethod
    def fit(self, *args, **kwargs):
        """用已记录的样本优化全部控制点。返回 self。"""
