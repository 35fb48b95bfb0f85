"""
core - 核心算法模块

包含:
- bspline: 累积B样条基函数工具
- spline_base: 节点与控制点管理（抽象基类）
- vector_space_spline: R³ 向量样条
- quaternion_spline: 单位四元数样条
"""

from .bspline import cumulative_basis_weights, uniform_basis_weights
from .quaternion_spline import QuaternionSpline
from .spline_base import (
    SplineConfigurationError,
    SplineError,
    SplineStateError,
    TimeOutOfRangeError,
    UniformSpline,
)
from .vector_space_spline import VectorSpaceSpline

__all__ = [
    "cumulative_basis_weights",
    "uniform_basis_weights",
    "UniformSpline",
    "VectorSpaceSpline",
    "QuaternionSpline",
    "SplineError",
    "SplineConfigurationError",
    "SplineStateError",
    "TimeOutOfRangeError",
]
