"""
utils - 工具函数模块

包含:
- geometry: 四元数与 SO(3) 工具
- time: 时间戳与时钟
"""

from .geometry import normalize, quat_exp, quat_log, quat_multiply
from .time import Clock, Duration, Time

__all__ = [
    "normalize",
    "quat_exp",
    "quat_log",
    "quat_multiply",
    "Clock",
    "Duration",
    "Time",
]
