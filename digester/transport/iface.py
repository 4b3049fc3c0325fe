# digester/transport/iface.py
from abc import ABC, abstractmethod

from digester.snapshot import ProcessSnapshot


class PlantTransport(ABC):
    """
    Capability interface to the field transport (real controller or simulator).
    Every call may raise TransportError / ConnectivityError.
    """

    @abstractmethod
    def write_digital(self, name: str, value: bool) -> None: ...

    @abstractmethod
    def write_analog(self, name: str, percent: float) -> None:
        """Valve opening or pump/heater power, 0..100."""
        ...

    @abstractmethod
    def current_snapshot(self) -> ProcessSnapshot: ...

    @abstractmethod
    def is_connected(self) -> bool: ...
