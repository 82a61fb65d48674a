"""Configuration loading and validation.

Carga los settings del engine desde config/engine.json (opcional) y
aplica overrides por variables de entorno. Valida que los valores
numéricos sean coherentes.
"""

import json
import logging
import os
from pathlib import Path

from benetrip.models import AppSettings, normalize_code

logger = logging.getLogger(__name__)

# Ruta al archivo de configuración (relativa a la raíz del proyecto)
CONFIG_PATH = Path(__file__).parent.parent / "config" / "engine.json"

# Variables de entorno que pisan el archivo
ENV_API_BASE = "BENETRIP_API_BASE"
ENV_CURRENCY = "BENETRIP_CURRENCY"

_INT_FIELDS = (
    "max_polls",
    "fast_poll_count",
    "first_render_threshold",
    "combination_batch_size",
    "results_per_page",
)
_FLOAT_FIELDS = (
    "http_timeout_seconds",
    "fast_poll_interval_seconds",
    "poll_interval_seconds",
    "poll_retry_seconds",
    "render_debounce_seconds",
)


def load_settings(config_path: Path | None = None) -> AppSettings:
    """Load engine settings from the config file and environment.

    Si el archivo no existe se usan los valores por defecto. Las variables
    de entorno (cargadas con python-dotenv en el CLI) tienen prioridad.

    Args:
        config_path: Ruta al archivo JSON. Si es None, usa la ruta por defecto.

    Returns:
        AppSettings validados.

    Raises:
        ValueError: Si algún valor es inválido o el JSON está mal formado.
    """
    path = config_path or CONFIG_PATH

    raw: dict = {}
    if path.exists():
        with open(path, encoding="utf-8") as f:
            try:
                raw = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"Config inválida en {path}: {e}") from e
        if not isinstance(raw, dict):
            raise ValueError(f"Config inválida en {path}: se esperaba un objeto JSON.")
    else:
        logger.info("Config %s no encontrada, usando valores por defecto.", path)

    settings = _parse_settings(raw)
    _apply_env(settings)

    logger.info(
        "Configuración cargada: backend=%s, polls=%d, batch=%d, moneda=%s",
        settings.api_base_url,
        settings.max_polls,
        settings.combination_batch_size,
        settings.default_currency,
    )
    return settings


def _parse_settings(raw: dict) -> AppSettings:
    """Parse settings with defaults.

    Parsea los settings. Si falta alguno, usa el valor por defecto de
    AppSettings; claves desconocidas se ignoran con un warning.
    """
    defaults = AppSettings()
    known = set(_INT_FIELDS) | set(_FLOAT_FIELDS) | {"api_base_url", "user_agent", "default_currency"}

    unknown = set(raw) - known
    if unknown:
        logger.warning("Claves de config desconocidas ignoradas: %s", ", ".join(sorted(unknown)))

    values: dict = {}
    for name in _INT_FIELDS:
        value = int(raw.get(name, getattr(defaults, name)))
        if value < 1:
            raise ValueError(f"{name} debe ser >= 1 (recibido: {value})")
        values[name] = value

    for name in _FLOAT_FIELDS:
        value = float(raw.get(name, getattr(defaults, name)))
        if value < 0:
            raise ValueError(f"{name} no puede ser negativo (recibido: {value})")
        values[name] = value

    return AppSettings(
        api_base_url=str(raw.get("api_base_url", defaults.api_base_url)),
        user_agent=str(raw.get("user_agent", defaults.user_agent)),
        default_currency=normalize_code(
            str(raw.get("default_currency", defaults.default_currency)), "default_currency",
        ),
        **values,
    )


def _apply_env(settings: AppSettings) -> None:
    api_base = os.getenv(ENV_API_BASE)
    if api_base:
        settings.api_base_url = api_base

    currency = os.getenv(ENV_CURRENCY)
    if currency:
        settings.default_currency = normalize_code(currency, ENV_CURRENCY)
