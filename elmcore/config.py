from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, str(default)))
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, str(default)))
    except ValueError:
        return default


# -----------------------------
# Engine tunables
# -----------------------------
def command_timeout_s() -> float:
    return _env_float("ELMCORE_COMMAND_TIMEOUT", 5.0)


def retry_count() -> int:
    return max(0, _env_int("ELMCORE_RETRY_COUNT", 3))


def init_timeout_s() -> float:
    return _env_float("ELMCORE_INIT_TIMEOUT", 5.0)


def buffer_size() -> int:
    return max(1, _env_int("ELMCORE_BUFFER_SIZE", 100))


def unit_system() -> str:
    return (os.environ.get("ELMCORE_UNIT_SYSTEM") or "metric").strip().lower()


# -----------------------------
# Transports
# -----------------------------
def serial_baudrate() -> int:
    return _env_int("ELMCORE_SERIAL_BAUDRATE", 38400)


def wifi_host() -> str:
    return os.environ.get("ELMCORE_WIFI_HOST", "192.168.0.10")


def wifi_port() -> int:
    return _env_int("ELMCORE_WIFI_PORT", 35000)


def ble_address() -> Optional[str]:
    return os.environ.get("ELMCORE_BLE_ADDRESS")


def ble_name() -> Optional[str]:
    return os.environ.get("ELMCORE_BLE_NAME")


def ble_service_uuid() -> Optional[str]:
    return os.environ.get("ELMCORE_BLE_SERVICE_UUID")


def ble_rx_uuid() -> Optional[str]:
    return os.environ.get("ELMCORE_BLE_RX_UUID")


def ble_tx_uuid() -> Optional[str]:
    return os.environ.get("ELMCORE_BLE_TX_UUID")


def ble_scan_timeout_s() -> float:
    return _env_float("ELMCORE_BLE_SCAN_TIMEOUT", 6.0)


@dataclass
class EngineSettings:
    command_timeout_s: float = 5.0
    retry_count: int = 3
    retry_delay_s: float = 0.1
    reset_timeout_s: float = 5.0
    init_step_timeout_s: float = 2.0
    poll_interval_s: float = 0.05
    buffer_size: int = 100
    unit_system: str = "metric"
    monitor_interval_ms: int = 1000
    inter_pid_delay_s: float = 0.05

    @classmethod
    def from_env(cls) -> "EngineSettings":
        return cls(
            command_timeout_s=command_timeout_s(),
            retry_count=retry_count(),
            reset_timeout_s=init_timeout_s(),
            buffer_size=buffer_size(),
            unit_system=unit_system(),
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineSettings":
        known = {f.name for f in fields(cls)}
        defaults = cls()
        kwargs: Dict[str, Any] = {}
        for key, value in (data or {}).items():
            if key not in known:
                continue
            expected = type(getattr(defaults, key))
            try:
                kwargs[key] = expected(value)
            except (TypeError, ValueError):
                continue
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def load_settings(path: Union[str, Path]) -> EngineSettings:
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError:
        return EngineSettings()
    except json.JSONDecodeError:
        return EngineSettings()
    if not isinstance(data, dict):
        return EngineSettings()
    return EngineSettings.from_dict(data)


def save_settings(settings: EngineSettings, path: Union[str, Path]) -> None:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(
        json.dumps(settings.to_dict(), ensure_ascii=False, indent=2, sort_keys=True) + "\n",
        encoding="utf-8",
    )
