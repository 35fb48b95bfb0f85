"""
utils 模块单元测试
"""

import threading

import numpy as np
import pytest
from scipy.spatial.transform import Rotation

from pose_spline.utils.geometry import (
    as_quaternion,
    as_vector3,
    normalize,
    quat_box_minus,
    quat_conjugate,
    quat_exp,
    quat_from_axis_angle,
    quat_inverse,
    quat_log,
    quat_multiply,
    quat_positive,
    quat_to_matrix,
)
from pose_spline.utils.time import Clock, Duration, Time


class TestGeometry:
    """四元数工具函数测试"""

    def test_normalize_single_vector(self):
        """测试单向量归一化"""
        v = np.array([3.0, 4.0, 0.0])
        result = normalize(v)
        assert np.isclose(np.linalg.norm(result), 1.0)
        np.testing.assert_allclose(result, [0.6, 0.8, 0.0])

    def test_normalize_batch(self):
        """测试批量向量归一化"""
        vectors = np.array([[3.0, 4.0, 0.0], [0.0, 0.0, 5.0]])
        norms = np.linalg.norm(normalize(vectors), axis=1)
        np.testing.assert_allclose(norms, [1.0, 1.0])

    def test_multiply_matches_scipy(self):
        """测试四元数乘法与 scipy Rotation 复合一致"""
        rng = np.random.default_rng(3)
        for _ in range(10):
            q1 = normalize(rng.normal(size=4))
            q2 = normalize(rng.normal(size=4))
            expected = (Rotation.from_quat(q1) * Rotation.from_quat(q2)).as_quat()
            result = quat_multiply(q1, q2)
            assert np.allclose(result, expected) or np.allclose(result, -expected)

    def test_inverse(self):
        """测试 q ⊗ q⁻¹ = 单位四元数"""
        q = normalize(np.array([0.1, -0.4, 0.3, 0.8]))
        np.testing.assert_allclose(quat_multiply(q, quat_inverse(q)), [0, 0, 0, 1], atol=1e-12)
        np.testing.assert_allclose(quat_inverse(q), quat_conjugate(q), atol=1e-12)

    def test_exp_matches_scipy(self):
        """测试指数映射与 scipy from_rotvec 一致"""
        for rotvec in ([0.3, -0.2, 0.1], [0.0, 0.0, np.pi / 2], [2.0, 1.0, -1.5]):
            expected = Rotation.from_rotvec(rotvec).as_quat()
            result = quat_exp(np.array(rotvec))
            assert np.allclose(result, expected) or np.allclose(result, -expected)

    def test_log_matches_scipy(self):
        """测试对数映射与 scipy as_rotvec 一致"""
        rng = np.random.default_rng(5)
        for _ in range(10):
            q = quat_positive(normalize(rng.normal(size=4)))
            np.testing.assert_allclose(quat_log(q), Rotation.from_quat(q).as_rotvec(), atol=1e-10)

    @pytest.mark.parametrize("scale", [0.0, 1e-12, 1e-9, 1e-7, 1e-5, 1e-3])
    def test_small_angle(self, scale):
        """测试小角度下对数/指数映射稳定"""
        rotvec = scale * np.array([0.6, -0.8, 0.0])
        q = quat_exp(rotvec)
        assert np.isclose(np.linalg.norm(q), 1.0)
        assert np.all(np.isfinite(q))
        np.testing.assert_allclose(quat_log(q), rotvec, atol=1e-15 + 1e-9 * scale)

    def test_identity_log(self):
        """测试单位四元数的对数为零"""
        np.testing.assert_allclose(quat_log(np.array([0.0, 0.0, 0.0, 1.0])), 0.0)

    def test_box_minus_shortest_arc(self):
        """测试流形差取最短弧"""
        q1 = quat_from_axis_angle(np.array([0.0, 0.0, 1.0]), 0.3)
        q2 = quat_from_axis_angle(np.array([0.0, 0.0, 1.0]), 0.1)
        np.testing.assert_allclose(quat_box_minus(q1, q2), [0.0, 0.0, 0.2], atol=1e-12)
        np.testing.assert_allclose(quat_box_minus(-q1, q2), [0.0, 0.0, 0.2], atol=1e-12)

    def test_to_matrix_matches_scipy(self):
        """测试旋转矩阵与 scipy 一致"""
        q = normalize(np.array([0.2, 0.3, -0.1, 0.9]))
        np.testing.assert_allclose(quat_to_matrix(q), Rotation.from_quat(q).as_matrix(), atol=1e-12)

    def test_as_vector3_validation(self):
        """测试三维向量输入校验"""
        source = np.array([1.0, 2.0, 3.0])
        result = as_vector3(source)
        np.testing.assert_allclose(result, source)
        result[0] = 9.0
        assert source[0] == 1.0
        with pytest.raises(ValueError):
            as_vector3([1.0, 2.0])
        with pytest.raises(ValueError):
            as_vector3([1.0, np.inf, 2.0])

    def test_as_quaternion_validation(self):
        """测试四元数输入校验"""
        np.testing.assert_allclose(as_quaternion([0, 0, 0, 3]), [0, 0, 0, 1])
        with pytest.raises(ValueError):
            as_quaternion([0, 0, 0])
        with pytest.raises(ValueError):
            as_quaternion([0, 0, 0, 0])


class TestTime:
    """时间戳测试"""

    def test_normalization(self):
        """测试 nsec 溢出被规范化"""
        t = Time(1, 1_500_000_000)
        assert (t.sec, t.nsec) == (2, 500_000_000)

    def test_sec_conversion(self):
        """测试浮点秒转换"""
        t = Time.from_sec(12.25)
        assert (t.sec, t.nsec) == (12, 250_000_000)
        assert t.to_sec() == 12.25
        assert float(t) == 12.25

    def test_nsec_conversion(self):
        """测试纳秒转换"""
        t = Time.from_nsec(3_000_000_007)
        assert (t.sec, t.nsec) == (3, 7)
        assert t.to_nsec() == 3_000_000_007

    def test_rounding_carry(self):
        """测试四舍五入进位到秒"""
        t = Time.from_sec(0.9999999999)
        assert (t.sec, t.nsec) == (1, 0)

    def test_is_zero(self):
        """测试零时间"""
        assert Time().is_zero()
        assert not Time(0, 1).is_zero()

    def test_negative_rejected(self):
        """测试负时间被拒绝"""
        with pytest.raises(ValueError):
            Time(-1, 0)

    def test_arithmetic(self):
        """测试时间与时间间隔运算"""
        t1 = Time(5, 0)
        t2 = Time(3, 500_000_000)
        d = t1 - t2
        assert isinstance(d, Duration)
        assert d.to_sec() == 1.5
        assert t2 + d == t1
        assert t1 - d == t2
        assert (t2 - t1).to_sec() == -1.5

    def test_ordering(self):
        """测试比较运算"""
        assert Time(1, 0) < Time(1, 1)
        assert Time(2, 0) >= Time(1, 999_999_999)
        assert sorted([Time(3), Time(1), Time(2)]) == [Time(1), Time(2), Time(3)]

    def test_duration(self):
        """测试时间间隔"""
        d = Duration.from_sec(-0.25)
        assert d.to_nsec() == -250_000_000
        assert (d * 2).to_sec() == -0.5
        assert (-d).to_sec() == 0.25
        assert Duration(1) > Duration(0, 999_999_999)


class TestClock:
    """时钟测试"""

    def test_system_time(self):
        """测试系统时间有效且递增"""
        clock = Clock()
        assert clock.is_system_time()
        assert clock.is_valid()
        t1 = clock.now()
        t2 = clock.now()
        assert t2 >= t1
        assert t1.to_sec() > 1e9

    def test_set_now_requires_sim_time(self):
        """测试系统时间下不能设置时间"""
        with pytest.raises(RuntimeError):
            Clock().set_now(Time(1))

    def test_sim_time(self):
        """测试仿真时间"""
        clock = Clock(use_sim_time=True)
        assert clock.is_sim_time()
        assert not clock.is_valid()
        assert not clock.wait_for_valid(timeout=0.01)
        clock.set_now(Time(10, 5))
        assert clock.is_valid()
        assert clock.now() == Time(10, 5)

    def test_sim_sleep_until(self):
        """测试仿真时间下 sleep_until 等待 set_now"""
        clock = Clock(use_sim_time=True)
        clock.set_now(Time(1))
        result = []

        def sleeper():
            result.append(clock.sleep_until(Time(3), timeout=5.0))

        thread = threading.Thread(target=sleeper)
        thread.start()
        clock.set_now(Time(2))
        clock.set_now(Time(3))
        thread.join(timeout=5.0)
        assert result == [True]

    def test_sim_sleep_timeout(self):
        """测试仿真时间未到达时超时返回 False"""
        clock = Clock(use_sim_time=True)
        clock.set_now(Time(1))
        assert not clock.sleep_for(Duration(1), timeout=0.01)

    def test_system_sleep_until_past(self):
        """测试系统时间下目标已过去时立即返回"""
        clock = Clock()
        assert clock.sleep_until(Time(1))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
