"""
time - 时间戳与时钟

提供:
1. Time: 秒/纳秒表示的时间点，可与浮点秒互相转换
2. Duration: 有符号时间间隔
3. Clock: 显式传递的时钟上下文（系统时间或仿真时间）

样条核心只要求时间戳可以通过 float() 转换为秒。
"""

import functools
import math
import threading
import time as _time

NSEC_PER_SEC = 1_000_000_000


def _split_sec(t: float) -> tuple[int, int]:
    """将浮点秒拆分为 (sec, nsec)，nsec 在 [0, 1e9) 内。"""
    sec = math.floor(t)
    nsec = int(round((t - sec) * 1e9))
    if nsec >= NSEC_PER_SEC:
        sec += 1
        nsec -= NSEC_PER_SEC
    return int(sec), nsec


@functools.total_ordering
class Duration:
    """有符号时间间隔，内部以整数纳秒保存。"""

    __slots__ = ("_nsec",)

    def __init__(self, sec: int = 0, nsec: int = 0):
        self._nsec = int(sec) * NSEC_PER_SEC + int(nsec)

    @classmethod
    def from_sec(cls, t: float) -> "Duration":
        sec, nsec = _split_sec(t)
        return cls(sec, nsec)

    @classmethod
    def from_nsec(cls, t: int) -> "Duration":
        return cls(0, t)

    @property
    def sec(self) -> int:
        return self._nsec // NSEC_PER_SEC

    @property
    def nsec(self) -> int:
        return self._nsec % NSEC_PER_SEC

    def to_sec(self) -> float:
        return self._nsec / 1e9

    def to_nsec(self) -> int:
        return self._nsec

    def is_zero(self) -> bool:
        return self._nsec == 0

    def __float__(self) -> float:
        return self.to_sec()

    def __add__(self, other):
        if isinstance(other, Duration):
            return Duration.from_nsec(self._nsec + other._nsec)
        return NotImplemented

    def __sub__(self, other):
        if isinstance(other, Duration):
            return Duration.from_nsec(self._nsec - other._nsec)
        return NotImplemented

    def __neg__(self):
        return Duration.from_nsec(-self._nsec)

    def __mul__(self, scale: float):
        return Duration.from_nsec(int(round(self._nsec * scale)))

    __rmul__ = __mul__

    def __eq__(self, other):
        if isinstance(other, Duration):
            return self._nsec == other._nsec
        return NotImplemented

    def __lt__(self, other):
        if isinstance(other, Duration):
            return self._nsec < other._nsec
        return NotImplemented

    def __hash__(self):
        return hash(("Duration", self._nsec))

    def __repr__(self):
        return f"Duration(sec={self.sec}, nsec={self.nsec})"


@functools.total_ordering
class Time:
    """
    时间点，(sec, nsec) 表示，非负。

    构造时自动规范化，使 0 <= nsec < 1e9。
    """

    __slots__ = ("sec", "nsec")

    def __init__(self, sec: int = 0, nsec: int = 0):
        total = int(sec) * NSEC_PER_SEC + int(nsec)
        if total < 0:
            raise ValueError(f"Time cannot be negative: sec={sec}, nsec={nsec}")
        self.sec, self.nsec = divmod(total, NSEC_PER_SEC)

    @classmethod
    def from_sec(cls, t: float) -> "Time":
        sec, nsec = _split_sec(t)
        return cls(sec, nsec)

    @classmethod
    def from_nsec(cls, t: int) -> "Time":
        return cls(0, t)

    def to_sec(self) -> float:
        return self.sec + self.nsec / 1e9

    def to_nsec(self) -> int:
        return self.sec * NSEC_PER_SEC + self.nsec

    def is_zero(self) -> bool:
        return self.sec == 0 and self.nsec == 0

    def __float__(self) -> float:
        return self.to_sec()

    def __add__(self, other):
        if isinstance(other, Duration):
            return Time.from_nsec(self.to_nsec() + other.to_nsec())
        return NotImplemented

    __radd__ = __add__

    def __sub__(self, other):
        if isinstance(other, Time):
            return Duration.from_nsec(self.to_nsec() - other.to_nsec())
        if isinstance(other, Duration):
            return Time.from_nsec(self.to_nsec() - other.to_nsec())
        return NotImplemented

    def __eq__(self, other):
        if isinstance(other, Time):
            return self.to_nsec() == other.to_nsec()
        return NotImplemented

    def __lt__(self, other):
        if isinstance(other, Time):
            return self.to_nsec() < other.to_nsec()
        return NotImplemented

    def __hash__(self):
        return hash(("Time", self.to_nsec()))

    def __repr__(self):
        return f"Time(sec={self.sec}, nsec={self.nsec})"


class Clock:
    """
    时钟上下文。

    use_sim_time=False 时 now() 返回系统墙钟时间；
    use_sim_time=True 时时间由 set_now() 推进，sleep_until() 会阻塞到仿真时间到达。
    """

    def __init__(self, use_sim_time: bool = False):
        self.use_sim_time = use_sim_time
        self._sim_now = Time()
        self._condition = threading.Condition()

    def is_sim_time(self) -> bool:
        return self.use_sim_time

    def is_system_time(self) -> bool:
        return not self.use_sim_time

    def now(self) -> Time:
        if not self.use_sim_time:
            return Time.from_nsec(_time.time_ns())
        with self._condition:
            return self._sim_now

    def set_now(self, new_now: Time):
        if not self.use_sim_time:
            raise RuntimeError("set_now() is only available with sim time")
        with self._condition:
            self._sim_now = new_now
            self._condition.notify_all()

    def is_valid(self) -> bool:
        """时间非零即有效。系统时间总是有效。"""
        return not self.use_sim_time or not self.now().is_zero()

    def wait_for_valid(self, timeout: float | None = None) -> bool:
        """等待时间变为有效。超时返回 False。"""
        if not self.use_sim_time:
            return True
        with self._condition:
            return self._condition.wait_for(lambda: not self._sim_now.is_zero(), timeout=timeout)

    def sleep_until(self, end: Time, timeout: float | None = None) -> bool:
        """
        睡眠直到时钟到达 end。

        Args:
            end: 目标时间
            timeout: 仿真时间下的最长等待（墙钟秒），None 表示无限等待

        Returns:
            是否到达目标时间
        """
        if not self.use_sim_time:
            remaining = (end - self.now()).to_sec()
            if remaining > 0:
                _time.sleep(remaining)
            return True
        with self._condition:
            return self._condition.wait_for(lambda: self._sim_now >= end, timeout=timeout)

    def sleep_for(self, duration: Duration, timeout: float | None = None) -> bool:
        return self.sleep_until(self.now() + duration, timeout=timeout)
