import os
import re
from typing import Any, Dict, Optional

import yaml

from copyloader.utils.logging_context import get_logging_context

# Pattern to match ${VAR} or ${env:VAR}
# Captures the variable name in group 1
ENV_PATTERN = re.compile(r"\$\{(?:env:)?([A-Za-z0-9_]+)\}")


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge override dictionary into base dictionary.

    Dicts are merged recursively; any other value in ``override`` replaces
    the one in ``base``.
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_yaml_with_env(path: str, env: Optional[str] = None) -> Dict[str, Any]:
    """Load YAML file with environment variable substitution and imports.

    Supports:
    - ${VAR_NAME} substitution
    - 'imports' list of relative paths
    - 'environments' overrides based on env param

    Args:
        path: Path to YAML file
        env: Environment name (e.g., 'prod', 'dev') to apply overrides

    Returns:
        Parsed dictionary (merged with imports and env overrides)

    Raises:
        FileNotFoundError: If file does not exist
        ValueError: If environment variable is missing
        yaml.YAMLError: If YAML parsing fails
    """
    ctx = get_logging_context()
    ctx.debug("Loading YAML configuration", path=path, env=env)

    if not os.path.exists(path):
        ctx.error("Configuration file not found", path=path)
        raise FileNotFoundError(f"YAML file not found: {path}")

    abs_path = os.path.abspath(path)
    base_dir = os.path.dirname(abs_path)

    with open(abs_path, "r", encoding="utf-8") as f:
        content = f.read()

    def replace_env(match):
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            ctx.error("Missing required environment variable", variable=var_name, file=abs_path)
            raise ValueError(f"Missing environment variable: {var_name}")
        return value

    substituted_content = ENV_PATTERN.sub(replace_env, content)

    try:
        data = yaml.safe_load(substituted_content) or {}
    except yaml.YAMLError as e:
        ctx.error("YAML parsing failed", path=abs_path, error=str(e))
        raise

    imports = data.pop("imports", [])
    if imports:
        if isinstance(imports, str):
            imports = [imports]

        merged_data = data.copy()
        for import_path in imports:
            if not os.path.isabs(import_path):
                full_import_path = os.path.join(base_dir, import_path)
            else:
                full_import_path = import_path

            if not os.path.exists(full_import_path):
                ctx.error(
                    "Imported configuration file not found",
                    import_path=import_path,
                    parent_file=abs_path,
                )
                raise FileNotFoundError(f"Imported YAML file not found: {full_import_path}")

            imported_data = load_yaml_with_env(full_import_path, env=env)
            # The importing file wins over what it imports
            merged_data = _deep_merge(imported_data, merged_data)

        data = merged_data

    environments = data.pop("environments", {}) or {}
    if env:
        if env in environments:
            ctx.debug(
                "Applying environment overrides",
                env=env,
                override_keys=list(environments[env].keys()),
            )
            data = _deep_merge(data, environments[env])
        else:
            ctx.debug(
                "No environment override found",
                env=env,
                available_environments=list(environments.keys()),
            )

    ctx.debug("Configuration loading complete", path=path, final_keys=list(data.keys()))
    return data
