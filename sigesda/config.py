"""
Runtime configuration.

Feature flags are an explicit, frozen value passed to whatever needs them
instead of a module-level switchboard. Defaults follow the rollout state of
the dues system (item-based cuotas on, legacy mass generation off).
"""

import os
from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Optional

from dotenv import load_dotenv

try:
    from zoneinfo import ZoneInfo
except Exception:
    ZoneInfo = None


DEFAULT_FEATURE_FLAGS: Dict[str, bool] = {
    "cuotas_v2": True,
    "motor_descuentos": True,
    "ajustes_manuales": True,
    "exenciones": True,
    "reportes_avanzados": True,
    "generacion_masiva_v1": False,
    "recalculo_cuotas": True,
    "historial_cuotas": True,
}

# Flags that only make sense on top of item-based cuotas
_REQUIRES_CUOTAS_V2 = ("motor_descuentos", "ajustes_manuales", "exenciones", "recalculo_cuotas")

_TRUTHY = ("1", "true", "t", "yes", "y", "on")


def _env_flag(name: str, default: bool = False) -> bool:
    v = os.getenv(name)
    if v is None:
        return bool(default)
    try:
        s = str(v).strip().lower()
    except Exception:
        return bool(default)
    return s in _TRUTHY


@dataclass(frozen=True)
class FeatureFlags:
    cuotas_v2: bool = True
    motor_descuentos: bool = True
    ajustes_manuales: bool = True
    exenciones: bool = True
    reportes_avanzados: bool = True
    generacion_masiva_v1: bool = False
    recalculo_cuotas: bool = True
    historial_cuotas: bool = True

    @classmethod
    def from_env(cls, prefix: str = "SIGESDA_FF_") -> "FeatureFlags":
        load_dotenv()
        values = {
            f.name: _env_flag(f"{prefix}{f.name.upper()}", DEFAULT_FEATURE_FLAGS[f.name])
            for f in fields(cls)
        }
        return cls(**values)

    def merged(self, overrides: Optional[Dict[str, Any]]) -> "FeatureFlags":
        known = {f.name for f in fields(self)}
        changes = {str(k): bool(v) for k, v in (overrides or {}).items() if str(k) in known}
        return replace(self, **changes)

    def is_enabled(self, name: str) -> bool:
        value = getattr(self, name, None)
        if value is None:
            return False
        if name in _REQUIRES_CUOTAS_V2 and not self.cuotas_v2:
            return False
        return bool(value)

    def as_dict(self) -> Dict[str, bool]:
        return {f.name: bool(getattr(self, f.name)) for f in fields(self)}


@dataclass(frozen=True)
class Settings:
    log_level: str = "INFO"
    app_timezone: str = "America/Argentina/Buenos_Aires"
    flags: FeatureFlags = field(default_factory=FeatureFlags)

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        tz_name = (
            os.getenv("APP_TIMEZONE")
            or os.getenv("TZ")
            or "America/Argentina/Buenos_Aires"
        )
        level = str(os.getenv("LOG_LEVEL") or "INFO").strip().upper() or "INFO"
        return cls(log_level=level, app_timezone=tz_name, flags=FeatureFlags.from_env())


def get_app_timezone(settings: Optional[Settings] = None):
    tz_name = (settings or Settings()).app_timezone
    if ZoneInfo is not None:
        try:
            return ZoneInfo(tz_name)
        except Exception:
            pass
    return timezone(timedelta(hours=-3))


def today_local(settings: Optional[Settings] = None) -> date:
    return datetime.now(get_app_timezone(settings)).date()
