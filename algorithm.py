"""
algorithm - 位姿样条主类

该模块实现 PoseSpline 类，组合平移样条 (VectorSpaceSpline) 与
旋转样条 (QuaternionSpline)，两者共享阶数与节点间隔，
由带时间戳的位姿样本增量拟合连续时间位姿轨迹。
"""

import numpy as np

from .core.quaternion_spline import QuaternionSpline
from .core.vector_space_spline import VectorSpaceSpline
from .utils.geometry import as_quaternion, as_vector3, quat_to_matrix


class PoseSpline:
    """
    连续时间位姿样条。

    Attributes:
        spline_order: 样条阶数
        translation_spline: 平移样条
        rotation_spline: 旋转样条
    """

    def __init__(self, spline_order: int = 4, time_interval: float | None = None):
        """
        Args:
            spline_order: 样条阶数 k >= 2
            time_interval: 节点间隔 Δt (s)
        """
        self.spline_order = spline_order
        self.translation_spline = VectorSpaceSpline(spline_order, time_interval)
        self.rotation_spline = QuaternionSpline(spline_order, time_interval)

    def set_time_interval(self, time_interval: float):
        self.translation_spline.set_time_interval(time_interval)
        self.rotation_spline.set_time_interval(time_interval)

    def get_time_interval(self) -> float | None:
        return self.translation_spline.get_time_interval()

    def initial_spline_knot(self, t: float):
        self.translation_spline.initial_spline_knot(t)
        self.rotation_spline.initial_spline_knot(t)

    def is_ts_evaluable(self, t: float) -> bool:
        return self.translation_spline.is_ts_evaluable(t) and self.rotation_spline.is_ts_evaluable(t)

    def get_control_point_num(self) -> int:
        return self.translation_spline.get_control_point_num()

    def add_sample(self, t: float, position, quaternion) -> int:
        """
        加入一个位姿样本。

        Args:
            t: 时间戳
            position: (3,) 位置
            quaternion: (4,) 姿态 [x, y, z, w]

        Returns:
            新追加的控制点个数
        """
        # 先校验旋转，避免平移样条已修改而旋转样条失败
        quaternion = as_quaternion(quaternion)
        added = self.translation_spline.add_sample(t, position)
        self.rotation_spline.add_sample(t, quaternion)
        return added

    def initial_spline(self, samples):
        """
        批量加载位姿样本。

        Args:
            samples: (t, position, quaternion) 序列
        """
        # 先校验全部样本，避免一条样条已加载而另一条失败
        samples = [(t, as_vector3(p), as_quaternion(q)) for t, p, q in samples]
        self.translation_spline.initial_spline((t, p) for t, p, _ in samples)
        self.rotation_spline.initial_spline((t, q) for t, _, q in samples)

    def fit(self):
        """分别拟合平移与旋转控制点。返回 self 以支持链式调用。"""
        self.translation_spline.fit()
        self.rotation_spline.fit()
        return self

    def evaluate(self, t: float) -> tuple[np.ndarray, np.ndarray]:
        """
        在时间 t 处评估位姿。

        Returns:
            position: (3,) 位置
            quaternion: (4,) 单位四元数
        """
        return self.translation_spline.evaluate(t), self.rotation_spline.evaluate(t)

    def evaluate_transform(self, t: float) -> np.ndarray:
        """
        在时间 t 处评估齐次变换矩阵。

        Returns:
            (4, 4) 变换矩阵 T = [R p; 0 1]
        """
        position, quaternion = self.evaluate(t)
        T = np.eye(4)
        T[:3, :3] = quat_to_matrix(quaternion)
        T[:3, 3] = position
        return T

    def evaluate_batch(self, ts) -> tuple[np.ndarray, np.ndarray]:
        """
        批量评估。

        Returns:
            positions: (M, 3)
            quaternions: (M, 4)
        """
        return self.translation_spline.evaluate_batch(ts), self.rotation_spline.evaluate_batch(ts)

    def linear_velocity(self, t: float) -> np.ndarray:
        """世界系线速度。"""
        return self.translation_spline.evaluate_derivative(t, 1)

    def linear_acceleration(self, t: float) -> np.ndarray:
        """世界系线加速度。"""
        return self.translation_spline.evaluate_derivative(t, 2)

    def angular_velocity(self, t: float) -> np.ndarray:
        """机体系角速度。"""
        return self.rotation_spline.angular_velocity(t)


if __name__ == "__main__":
    from pose_spline.datasets import helix_trajectory

    ts, positions, quaternions = helix_trajectory()

    print("=== 位姿样条测试 ===")
    print(f"输入样本数: {len(ts)}")

    pose = PoseSpline(spline_order=4, time_interval=0.1)
    pose.initial_spline(zip(ts, positions, quaternions))
    pose.fit()
    print(f"控制点数: {pose.get_control_point_num()}")

    t_test = ts[len(ts) // 2]
    position, quaternion = pose.evaluate(t_test)
    print(f"\n在 t={t_test:.2f}s 处:")
    print(f"  位置: {position}")
    print(f"  姿态: {quaternion}")
    print(f"  线速度: {pose.linear_velocity(t_test)}")
    print(f"  角速度: {pose.angular_velocity(t_test)}")

    pos_samples, quat_samples = pose.evaluate_batch(ts)
    print(f"\n位置误差: max={np.max(np.linalg.norm(pos_samples - positions, axis=1)):.2e}")
    print(f"姿态归一化: {np.allclose(np.linalg.norm(quat_samples, axis=1), 1.0)}")
