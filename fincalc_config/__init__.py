"""
fincalc_config -- single public entrypoint for engine configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``. Services receive an ``EngineConfiguration``
    and hand its embedded tables and policies to the engines. YAML loading
    is internal to this package.

Architecture position:
    Configuration -- YAML-driven, validated before use.
    Sits above ``fincalc_kernel`` and ``fincalc_engines`` (it builds their
    value types) and below ``fincalc_services``. Engines never import it.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Validation before parsing: a set with any error is never returned.
    - Deterministic identity: the same YAML always yields the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- no configuration set with that name.
    - ``ConfigValidationError`` -- the set failed validation; ``errors``
      lists every problem.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``FINANCE_CONFIG_TRACE`` log entry with the config_id, version and
    checksum, tying each calculation back to the configuration used.
"""

from __future__ import annotations

import logging
from pathlib import Path

from fincalc_config.loader import compute_checksum, load_yaml_file, parse_configuration
from fincalc_config.schema import ConfigScope, EngineConfiguration, PostingAccounts
from fincalc_config.validator import ConfigValidationResult, validate_configuration
from fincalc_kernel.exceptions import ConfigValidationError

_logger = logging.getLogger("fincalc_kernel.config")

# Default configuration sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"

__all__ = [
    "ConfigScope",
    "ConfigValidationResult",
    "EngineConfiguration",
    "PostingAccounts",
    "compute_checksum",
    "get_active_config",
    "validate_configuration",
]


def get_active_config(
    config_dir: Path | None = None,
    set_name: str = "default",
) -> EngineConfiguration:
    """The ONLY public configuration entrypoint.

    Args:
        config_dir: Override path to the configuration sets directory.
            Defaults to fincalc_config/sets/.
        set_name: Configuration set subdirectory holding ``root.yaml``.

    Returns:
        A validated, frozen ``EngineConfiguration``.

    Raises:
        FileNotFoundError: If the set does not exist.
        ConfigValidationError: If validation reports errors.
    """
    sets_dir = Path(config_dir) if config_dir is not None else _DEFAULT_CONFIG_DIR
    root_file = sets_dir / set_name / "root.yaml"
    if not root_file.is_file():
        raise FileNotFoundError(f"Configuration set '{set_name}' not found in {sets_dir}")

    data = load_yaml_file(root_file)

    validation = validate_configuration(data)
    if not validation.is_valid:
        raise ConfigValidationError(str(data.get("config_id", set_name)), validation.errors)
    for warning in validation.warnings:
        _logger.warning("config_validation_warning", extra={
            "config_set_id": data.get("config_id"),
            "warning": warning,
        })

    config = parse_configuration(data)

    _logger.info(
        "FINANCE_CONFIG_TRACE",
        extra={
            "trace_type": "FINANCE_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "checksum": config.checksum,
            "scope_legal_entity": config.scope.legal_entity,
            "scope_jurisdiction": config.scope.jurisdiction,
            "incentive_plan_count": len(config.incentive_plans),
            "bracket_count": len(config.withholding_tax.brackets),
        },
    )
    return config
