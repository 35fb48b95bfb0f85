"""
datasets - 测试轨迹数据

包含:
- trajectories: 螺旋、直线与定轴旋转合成轨迹
"""

from .trajectories import (
    HelixTrajectoryConfig,
    constant_rate_rotation,
    helix_trajectory,
    straight_line_trajectory,
)

__all__ = [
    "HelixTrajectoryConfig",
    "helix_trajectory",
    "straight_line_trajectory",
    "constant_rate_rotation",
]
