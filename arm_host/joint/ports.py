# arm_host/joint/ports.py
"""
Boundaries between the joint controller and the hardware around it.

The controller reads one position sample and writes one voltage per tick.
Anything that satisfies these protocols can be plugged in: motor-controller
drivers, simulators, or test fakes.
"""
from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable


@runtime_checkable
class PositionSensor(Protocol):
    def read_position(self) -> Optional[float]:
        """Latest position sample in raw units, or None if the read failed. Must not block."""
        ...


@runtime_checkable
class VelocitySensor(Protocol):
    def read_velocity(self) -> Optional[float]:
        """Latest velocity sample in raw units per second, or None. Must not block."""
        ...


@runtime_checkable
class VoltageActuator(Protocol):
    def set_voltage(self, volts: float) -> None:
        ...


@runtime_checkable
class TelemetrySink(Protocol):
    def publish(self, topic: str, data: Any) -> None:
        ...


class LeaderFollowerActuator:
    """
    One logical actuator driving two mechanically linked motors.

    The follower mirrors every command sent to the leader, inverted by
    default because the two motors face each other across the joint.
    """

    def __init__(
        self,
        leader: VoltageActuator,
        follower: VoltageActuator,
        inverted: bool = False,
        follower_inverted: bool = True,
    ) -> None:
        self._leader = leader
        self._follower = follower
        self._leader_sign = -1.0 if inverted else 1.0
        self._follower_sign = -1.0 if follower_inverted else 1.0
        self.last_voltage = 0.0

    def set_voltage(self, volts: float) -> None:
        leader_volts = self._leader_sign * float(volts)
        self._leader.set_voltage(leader_volts)
        self._follower.set_voltage(self._follower_sign * leader_volts)
        self.last_voltage = float(volts)

    def stop(self) -> None:
        self.set_voltage(0.0)
