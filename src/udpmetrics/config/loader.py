import os
from copy import deepcopy
from typing import Any, Dict, Tuple, Union

import yaml

from udpmetrics.client import DEFAULT_CLOSE_GRACE_S, DEFAULT_PORT, MetricsClient
from udpmetrics.namespace import NamespaceProxy
from udpmetrics.utils.logging import get_logger

logger = get_logger("config.loader")

DEFAULT_YAML_PATH = "config/statsd.yaml"

DEFAULT_SETTINGS: Dict[str, Any] = {
    "host": "localhost",
    "port": DEFAULT_PORT,
    "prefix": "",
    "close_grace_s": DEFAULT_CLOSE_GRACE_S,
}


def _load_settings_yaml(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        return {}
    except (OSError, yaml.YAMLError) as exc:
        logger.error("Failed to load settings yaml", path=path, error=str(exc))
        return {}
    if not isinstance(data, dict):
        logger.warning("Settings yaml is not a mapping, ignored", path=path)
        return {}
    # Accept either a flat file or one nested under a "statsd" key
    section = data.get("statsd", data)
    return {k: v for k, v in section.items() if k in DEFAULT_SETTINGS}


def _env_overrides() -> Dict[str, Any]:
    env: Dict[str, Any] = {}
    if os.getenv("STATSD_HOST"):
        env["host"] = os.getenv("STATSD_HOST")
    if os.getenv("STATSD_PORT"):
        try:
            env["port"] = int(os.getenv("STATSD_PORT"))
        except ValueError:
            logger.warning("Invalid STATSD_PORT, ignored", value=os.getenv("STATSD_PORT"))
    if os.getenv("STATSD_PREFIX") is not None:
        env["prefix"] = os.getenv("STATSD_PREFIX")
    if os.getenv("STATSD_CLOSE_GRACE_S"):
        try:
            env["close_grace_s"] = float(os.getenv("STATSD_CLOSE_GRACE_S"))
        except ValueError:
            logger.warning("Invalid STATSD_CLOSE_GRACE_S, ignored", value=os.getenv("STATSD_CLOSE_GRACE_S"))
    return env


def load_settings(
    path: str | None = None,
    cli_overrides: Dict[str, Any] | None = None,
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Return (settings, defaults): defaults < yaml < env < cli_overrides."""
    cli_overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}

    settings = deepcopy(DEFAULT_SETTINGS)
    applied_defaults = deepcopy(DEFAULT_SETTINGS)

    settings.update(_load_settings_yaml(path or DEFAULT_YAML_PATH))
    settings.update(_env_overrides())
    settings.update(cli_overrides)

    return settings, applied_defaults


def summarize_settings(settings: Dict[str, Any]) -> str:
    lines = []
    lines.append(f"host={settings.get('host')}")
    lines.append(f"port={settings.get('port')}")
    lines.append(f"prefix={settings.get('prefix') or '-'}")
    lines.append(f"close_grace_s={settings.get('close_grace_s')}")
    return " | ".join(lines)


def build_client(settings: Dict[str, Any]) -> Union[MetricsClient, NamespaceProxy]:
    client = MetricsClient(
        settings["host"],
        int(settings.get("port", DEFAULT_PORT)),
        close_grace_s=float(settings.get("close_grace_s", DEFAULT_CLOSE_GRACE_S)),
    )
    prefix = settings.get("prefix")
    if prefix:
        return client.space(prefix)
    return client
