"""
algorithm (PoseSpline) 模块单元测试
"""

import numpy as np
import pytest

from pose_spline import PoseSpline
from pose_spline.core import SplineConfigurationError, TimeOutOfRangeError
from pose_spline.datasets import helix_trajectory
from pose_spline.utils.geometry import quat_to_matrix


def _same_rotation(q1, q2, atol):
    return np.allclose(q1, q2, atol=atol) or np.allclose(q1, -q2, atol=atol)


class TestPoseSpline:
    """PoseSpline 主类测试"""

    @pytest.fixture
    def helix_data(self):
        """螺旋位姿轨迹"""
        return helix_trajectory()

    @pytest.fixture
    def fitted_pose(self, helix_data):
        ts, positions, quaternions = helix_data
        pose = PoseSpline(spline_order=4, time_interval=0.1)
        pose.initial_spline(zip(ts, positions, quaternions))
        return pose.fit()

    def test_initialization(self):
        """测试初始化"""
        pose = PoseSpline(4, 0.1)
        assert pose.get_time_interval() == 0.1
        assert pose.get_control_point_num() == 0
        assert not pose.is_ts_evaluable(0.0)

    def test_time_interval_shared(self):
        """测试平移与旋转样条共享节点间隔"""
        pose = PoseSpline(3)
        pose.set_time_interval(0.2)
        assert pose.translation_spline.get_time_interval() == 0.2
        assert pose.rotation_spline.get_time_interval() == 0.2

    def test_invalid_time_interval(self):
        """测试非法节点间隔"""
        with pytest.raises(SplineConfigurationError):
            PoseSpline(4, 0.0)

    def test_knots_stay_in_sync(self):
        """测试两条样条的节点与控制点数一致"""
        pose = PoseSpline(4, 0.1)
        pose.initial_spline_knot(0.0)
        added = pose.add_sample(0.25, [0.0, 0.0, 0.0], [0.0, 0.0, 0.0, 1.0])
        assert added == 3
        assert pose.get_control_point_num() == 7
        np.testing.assert_allclose(pose.translation_spline.get_knots(), pose.rotation_spline.get_knots())
        assert pose.rotation_spline.get_control_point_num() == 7

    def test_invalid_quaternion_leaves_state_unchanged(self):
        """测试非法姿态不会修改平移样条"""
        pose = PoseSpline(4, 0.1)
        with pytest.raises(ValueError):
            pose.add_sample(0.0, [1.0, 2.0, 3.0], [0.0, 0.0, 0.0, 0.0])
        assert pose.translation_spline.get_sample_num() == 0
        assert pose.get_control_point_num() == 0

    @pytest.mark.parametrize(
        "bad_sample",
        [(0.3, [0.0, 0.0, 0.0], [0.0, 0.0, 0.0, 0.0]), (0.3, [0.0, np.nan, 0.0], [0.0, 0.0, 0.0, 1.0])],
        ids=["zero-quaternion", "nan-position"],
    )
    def test_invalid_batch_leaves_state_unchanged(self, bad_sample):
        """测试批量中含非法样本时两条样条都不被修改"""
        pose = PoseSpline(4, 0.1)
        samples = [(0.0, [0.0, 0.0, 0.0], [0.0, 0.0, 0.0, 1.0]), bad_sample]
        with pytest.raises(ValueError):
            pose.initial_spline(samples)
        assert pose.translation_spline.get_control_point_num() == 0
        assert pose.rotation_spline.get_control_point_num() == 0
        assert pose.translation_spline.get_sample_num() == 0
        assert pose.rotation_spline.get_sample_num() == 0

    def test_non_finite_time_leaves_state_unchanged(self):
        """测试非有限时间戳不修改任何样条"""
        pose = PoseSpline(4, 0.1)
        pose.add_sample(0.0, [0.0, 0.0, 0.0], [0.0, 0.0, 0.0, 1.0])
        with pytest.raises(TimeOutOfRangeError):
            pose.add_sample(float("inf"), [0.0, 0.0, 0.0], [0.0, 0.0, 0.0, 1.0])
        assert pose.translation_spline.get_control_point_num() == 4
        assert pose.rotation_spline.get_control_point_num() == 4

    def test_fit_reproduces_samples(self, fitted_pose, helix_data):
        """测试拟合后位置与姿态接近样本"""
        ts, positions, quaternions = helix_data
        pos_samples, quat_samples = fitted_pose.evaluate_batch(ts)
        assert np.max(np.linalg.norm(pos_samples - positions, axis=1)) < 1e-3
        for q_fit, q in zip(quat_samples, quaternions):
            assert _same_rotation(q_fit, q, atol=1e-3)

    def test_evaluate_transform(self, fitted_pose):
        """测试齐次变换矩阵结构"""
        t = 0.73
        position, quaternion = fitted_pose.evaluate(t)
        T = fitted_pose.evaluate_transform(t)
        assert T.shape == (4, 4)
        np.testing.assert_allclose(T[:3, :3], quat_to_matrix(quaternion), atol=1e-12)
        np.testing.assert_allclose(T[:3, 3], position)
        np.testing.assert_allclose(T[3], [0.0, 0.0, 0.0, 1.0])
        np.testing.assert_allclose(T[:3, :3] @ T[:3, :3].T, np.eye(3), atol=1e-9)

    def test_linear_velocity(self, fitted_pose):
        """测试线速度接近解析值"""
        for t in (0.5, 1.0, 1.5):
            expected = [-np.sin(t), np.cos(t), 0.2]
            np.testing.assert_allclose(fitted_pose.linear_velocity(t), expected, atol=1e-2)

    def test_linear_acceleration(self, fitted_pose):
        """测试线加速度接近解析值"""
        for t in (0.5, 1.0, 1.5):
            expected = [-np.cos(t), -np.sin(t), 0.0]
            np.testing.assert_allclose(fitted_pose.linear_acceleration(t), expected, atol=5e-2)

    def test_angular_velocity(self, fitted_pose):
        """测试机体系角速度接近解析值 [0.3, sin(0.3t), cos(0.3t)]"""
        for t in (0.5, 1.0, 1.5):
            expected = [0.3, np.sin(0.3 * t), np.cos(0.3 * t)]
            np.testing.assert_allclose(fitted_pose.angular_velocity(t), expected, atol=1e-2)

    def test_out_of_range(self, fitted_pose):
        """测试区间外求值"""
        with pytest.raises(TimeOutOfRangeError):
            fitted_pose.evaluate(-0.5)
        with pytest.raises(TimeOutOfRangeError):
            fitted_pose.evaluate_transform(10.0)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
