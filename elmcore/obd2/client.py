from __future__ import annotations

from .base import BaseClient
from .dtc_mixin import DtcMixin
from .monitor_mixin import MonitorMixin
from .pid_mixin import PidMixin
from .vehicle_info import VehicleInfoMixin


class OBDClient(
    BaseClient,
    PidMixin,
    DtcMixin,
    MonitorMixin,
    VehicleInfoMixin,
):
    """
    Public entry point.

        client = OBDClient()
        client.connect(device)                     # blocks until READY
        rpm = client.request_pid("0C").result()    # ProcessedObdData
        codes = client.read_dtcs().result()        # [DtcInfo]
        client.disconnect()
    """

    def disconnect(self) -> None:
        self.stop_monitoring()
        super().disconnect()
