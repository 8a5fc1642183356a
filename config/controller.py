"""Configuration controller for YAML-based settings."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml


@dataclass(frozen=True)
class ConfigPaths:
    """Filesystem paths for configuration files."""

    config_dir: Path
    config_file: Path
    override_file: Path


class ConfigController:
    """Singleton controller for loading and updating configuration."""

    _instance: "ConfigController | None" = None

    def __init__(self, config_file: str = "default.yaml") -> None:
        if ConfigController._instance is not None:
            raise RuntimeError("You cannot create another ConfigController class")

        config_dir = Path("config")
        self.paths = ConfigPaths(
            config_dir=config_dir,
            config_file=config_dir / config_file,
            override_file=config_dir / "override.yaml",
        )
        self.config: dict[str, Any] = {}
        self.load_config()

    @classmethod
    def get_instance(cls) -> "ConfigController":
        """Return the singleton instance of the controller."""

        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def load_config(self) -> None:
        """Load configuration from default and override YAML files."""

        config: dict[str, Any] = {}
        if self.paths.config_file.exists():
            with self.paths.config_file.open("r", encoding="utf-8") as file:
                config = yaml.safe_load(file) or {}

        if self.paths.override_file.exists():
            with self.paths.override_file.open("r", encoding="utf-8") as file:
                override_config = yaml.safe_load(file) or {}
            if override_config:
                config = self._deep_merge(config, override_config)

        self.config = self._normalize_dashboard_config(config)

    def save_config(self, config: dict[str, Any]) -> None:
        """Persist configuration to override.yaml, archiving previous overrides."""

        if self.paths.override_file.exists():
            archive_index = 1
            archive_file = self._archive_path(archive_index)
            while archive_file.exists():
                archive_index += 1
                archive_file = self._archive_path(archive_index)
            self.paths.override_file.rename(archive_file)

        self.paths.config_dir.mkdir(parents=True, exist_ok=True)
        with self.paths.override_file.open("w", encoding="utf-8") as file:
            yaml.safe_dump(config, file)

    def get_config(self) -> dict[str, Any]:
        """Return the currently loaded configuration."""

        return dict(self.config)

    def set_config(self, config: dict[str, Any]) -> None:
        """Set and persist configuration values."""

        self.config = self._normalize_dashboard_config(dict(config))
        self.save_config(self.config)

    def _archive_path(self, index: int) -> Path:
        """Return the archive path for a given override index."""

        filename = f"override_{index:04d}.yaml"
        return self.paths.config_dir / filename

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Deep merge dictionaries, overriding base values with override values."""

        merged = dict(base)
        for key, value in override.items():
            if (
                key in merged
                and isinstance(merged[key], dict)
                and isinstance(value, dict)
            ):
                merged[key] = self._deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged

    def _normalize_dashboard_config(self, config: dict[str, Any]) -> dict[str, Any]:
        """Fill every dashboard section with typed defaults."""

        normalized = dict(config)
        normalized["logging_level"] = str(normalized.get("logging_level", "INFO"))
        normalized["file_logging_enabled"] = bool(normalized.get("file_logging_enabled", False))
        normalized["log_file"] = str(normalized.get("log_file", "logs/dashboard.log"))

        control_cfg = dict(normalized.get("control_plane") or {})
        control_cfg["base_url"] = str(
            control_cfg.get("base_url", "http://localhost:8000")
        ).rstrip("/")
        control_cfg["timeout_s"] = float(control_cfg.get("timeout_s", 5.0))
        normalized["control_plane"] = control_cfg

        stream_cfg = dict(normalized.get("stream") or {})
        stream_cfg["path"] = str(stream_cfg.get("path", "/ws/detections"))
        stream_cfg["max_reconnect_attempts"] = int(stream_cfg.get("max_reconnect_attempts", 10))
        stream_cfg["base_delay_ms"] = int(stream_cfg.get("base_delay_ms", 1000))
        stream_cfg["max_delay_ms"] = int(stream_cfg.get("max_delay_ms", 30000))
        normalized["stream"] = stream_cfg

        liveness_cfg = dict(normalized.get("liveness") or {})
        liveness_cfg["interval_s"] = float(liveness_cfg.get("interval_s", 10.0))
        normalized["liveness"] = liveness_cfg

        buffer_cfg = dict(normalized.get("buffer") or {})
        buffer_cfg["capacity"] = max(1, int(buffer_cfg.get("capacity", 1000)))
        normalized["buffer"] = buffer_cfg

        simulator_cfg = dict(normalized.get("simulator") or {})
        simulator_cfg["interval_ms"] = int(simulator_cfg.get("interval_ms", 500))
        simulator_cfg["max_batch"] = int(simulator_cfg.get("max_batch", 8))
        simulator_cfg["frame_width"] = int(simulator_cfg.get("frame_width", 1920))
        simulator_cfg["frame_height"] = int(simulator_cfg.get("frame_height", 1080))
        normalized["simulator"] = simulator_cfg

        render_cfg = dict(normalized.get("render") or {})
        render_cfg["window_ms"] = int(render_cfg.get("window_ms", 2000))
        render_cfg["fps"] = max(1, int(render_cfg.get("fps", 60)))
        render_cfg["width"] = int(render_cfg.get("width", simulator_cfg["frame_width"]))
        render_cfg["height"] = int(render_cfg.get("height", simulator_cfg["frame_height"]))
        normalized["render"] = render_cfg

        status_cfg = dict(normalized.get("status") or {})
        status_cfg["heartbeat_stale_ms"] = int(status_cfg.get("heartbeat_stale_ms", 5000))
        status_cfg["log_period_s"] = float(status_cfg.get("log_period_s", 15.0))
        normalized["status"] = status_cfg

        settings_cfg = dict(normalized.get("settings") or {})
        settings_cfg["confidence"] = float(settings_cfg.get("confidence", 0.5))
        settings_cfg["nms"] = float(settings_cfg.get("nms", 0.4))
        settings_cfg["show_overlay"] = bool(settings_cfg.get("show_overlay", True))
        settings_cfg["show_boxes"] = bool(settings_cfg.get("show_boxes", True))
        settings_cfg["show_labels"] = bool(settings_cfg.get("show_labels", True))
        settings_cfg["source"] = str(settings_cfg.get("source", "camera"))
        normalized["settings"] = settings_cfg
        return normalized
