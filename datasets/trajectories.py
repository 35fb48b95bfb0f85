"""
trajectories - 合成位姿轨迹数据

用于测试与演示的确定性轨迹:
- 螺旋线位置 + 绕切向偏航的姿态
- 直线位置（匀速）
- 定轴匀速旋转姿态

位置单位 m，时间单位 s，四元数 [x, y, z, w]。
"""

from dataclasses import dataclass

import numpy as np

from ..utils.geometry import quat_exp, quat_multiply


@dataclass
class HelixTrajectoryConfig:
    """螺旋轨迹参数"""

    radius_m: float = 1.0  # 螺旋半径
    pitch_m: float = 0.2  # 每弧度上升高度
    angular_rate_rad_s: float = 1.0  # 绕 z 轴角速率
    roll_rate_rad_s: float = 0.3  # 机体绕 x 轴附加角速率
    duration_s: float = 2.0  # 总时长
    sample_rate_hz: float = 50.0  # 采样频率


def helix_trajectory(config: HelixTrajectoryConfig | None = None) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    生成螺旋位姿轨迹。

    Args:
        config: 轨迹参数，默认使用 HelixTrajectoryConfig()

    Returns:
        ts: (N,) 时间戳
        positions: (N, 3) 位置
        quaternions: (N, 4) 姿态
    """
    config = config or HelixTrajectoryConfig()
    n = int(round(config.duration_s * config.sample_rate_hz)) + 1
    ts = np.linspace(0.0, config.duration_s, n)

    angles = config.angular_rate_rad_s * ts
    positions = np.column_stack([
        config.radius_m * np.cos(angles),
        config.radius_m * np.sin(angles),
        config.pitch_m * angles,
    ])

    quaternions = np.array([
        quat_multiply(
            quat_exp(np.array([0.0, 0.0, yaw])),
            quat_exp(np.array([config.roll_rate_rad_s * t, 0.0, 0.0])),
        )
        for t, yaw in zip(ts, angles)
    ])

    return ts, positions, quaternions


def straight_line_trajectory(
    start: np.ndarray,
    velocity: np.ndarray,
    duration_s: float = 1.0,
    sample_rate_hz: float = 50.0,
) -> tuple[np.ndarray, np.ndarray]:
    """
    匀速直线轨迹 p(t) = start + velocity·t。

    Returns:
        ts: (N,) 时间戳
        positions: (N, 3) 位置
    """
    n = int(round(duration_s * sample_rate_hz)) + 1
    ts = np.linspace(0.0, duration_s, n)
    positions = np.asarray(start, dtype=float) + ts[:, np.newaxis] * np.asarray(velocity, dtype=float)
    return ts, positions


def constant_rate_rotation(
    axis: np.ndarray,
    rate_rad_s: float,
    duration_s: float = 1.0,
    sample_rate_hz: float = 50.0,
) -> tuple[np.ndarray, np.ndarray]:
    """
    定轴匀速旋转 q(t) = exp(rate·t·axis)。

    Returns:
        ts: (N,) 时间戳
        quaternions: (N, 4) 姿态
    """
    axis = np.asarray(axis, dtype=float)
    axis = axis / np.linalg.norm(axis)
    n = int(round(duration_s * sample_rate_hz)) + 1
    ts = np.linspace(0.0, duration_s, n)
    quaternions = np.array([quat_exp(rate_rad_s * t * axis) for t in ts])
    return ts, quaternions


if __name__ == "__main__":
    ts, positions, quaternions = helix_trajectory()

    print("=== 螺旋位姿轨迹 ===")
    print(f"样本数: {len(ts)}")
    print(f"时间范围: [{ts[0]:.2f}, {ts[-1]:.2f}] s")
    print(f"位置范围: Z[{positions[:, 2].min():.2f}, {positions[:, 2].max():.2f}] m")
    print(f"\n四元数归一化验证: {np.allclose(np.linalg.norm(quaternions, axis=1), 1.0)}")
