"""
pose_spline - 连续时间位姿样条库

以均匀累积B样条表示随时间变化的三维位置或单位四元数姿态，
由带时间戳的样本增量拟合：新样本到来时按需追加节点与控制点，
已拟合的结构保持不变。旋转样条在流形上以四元数复合代替求和。
"""

import logging

from .algorithm import PoseSpline
from .core import QuaternionSpline, VectorSpaceSpline

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"
__all__ = ["PoseSpline", "VectorSpaceSpline", "QuaternionSpline"]
