"""
Report configuration.

The configuration is a typed dataclass tree. A user file (YAML or JSON) is
layered over the defaults field by field, and every field declares how that
happens in its metadata:

* ``merge``   - nested section, merged key by key
* ``replace`` - the user value replaces the default outright (scalars, lists)

Keys may be written in camelCase (``rampUpWindowMs``) or snake_case
(``ramp_up_window_ms``).
"""

import json
import logging
import os
import re
from dataclasses import dataclass, field, fields, is_dataclass
from typing import Any, Dict, List, Mapping, Optional, Union, get_args, get_origin

import yaml

logger = logging.getLogger(__name__)

MERGE = "merge"
REPLACE = "replace"

DEFAULT_CONFIG_FILES = ("config.yaml", "config.yml", "config.json")
DEFAULT_OUTPUT_DIR = ".artifacts/unified-report"
DEFAULT_URL_PATTERN = r"app-gifted-(?:ui-)?(\w+)\.azurewebsites\.net"

ENV_OVERRIDES = (
    ("ai", "api_key", "GEMINI_API_KEY"),
    ("azure", "subscription_id", "AZURE_SUBSCRIPTION_ID"),
    ("azure", "resource_group", "AZURE_RESOURCE_GROUP"),
    ("azure", "load_test_resource", "AZURE_LOAD_TEST_RESOURCE"),
    ("azure", "load_test_data_plane_uri", "AZURE_LOAD_TEST_DATA_PLANE_URI"),
)


class ConfigError(ValueError):
    """Raised when a configuration file is missing, unreadable or invalid."""


def _section(factory):
    return field(default_factory=factory, metadata={"policy": MERGE})


def _items(factory, item_type=None):
    return field(default_factory=factory, metadata={"policy": REPLACE, "item": item_type})


# =========================
# SCHEMA
# =========================

@dataclass
class FeatureFlags:
    automation: bool = True
    ai_analysis: bool = True


@dataclass
class AISettings:
    api_key: str = ""
    model: str = "gemini-2.5-pro"
    fallback_models: List[str] = _items(lambda: ["gemini-1.5-pro", "gemini-pro"])


@dataclass
class AppComponent:
    resource_id: str = ""
    metrics: List[str] = _items(list)
    name: str = ""


@dataclass
class AzureSettings:
    subscription_id: str = ""
    resource_group: str = ""
    load_test_resource: str = ""
    load_test_data_plane_uri: str = ""
    api_version: str = "2024-12-01-preview"
    test_run_id: str = ""
    app_components: List[AppComponent] = _items(list, AppComponent)


@dataclass
class JmxFileSettings:
    path: Optional[str] = None


@dataclass
class UserType:
    key: str = ""
    display_name: str = ""
    thread_group_patterns: List[str] = _items(list)
    jmx_thread_group_names: List[str] = _items(list)

    @property
    def patterns(self) -> List[str]:
        return self.thread_group_patterns or [self.display_name]


@dataclass
class EnvironmentSettings:
    url_pattern: str = DEFAULT_URL_PATTERN


@dataclass
class ThreadCounting:
    ramp_up_window_ms: int = 10000
    execution_gap_ms: int = 30000


@dataclass
class PathSettings:
    jmeter_csv_path: str = "jmeter"
    jmeter_csv_alternatives: List[str] = _items(lambda: ["unified-report/jmeter", "jmeter"])
    playwright_report_path: str = "playwright-report"
    playwright_performance_reports_path: str = "performance-reports"
    playwright_consolidated_reports_path: str = "unified-report/playwright-reports"
    azure_data_path: str = "unified-report/azure"
    azure_data_alternatives: List[str] = _items(lambda: ["azure", "unified-report/azure"])


def default_user_types() -> List[UserType]:
    return [
        UserType("districtCoordinators", "District Coordinators", ["District Coordinator"]),
        UserType("schoolUsers", "School Users", ["School User"]),
        UserType("gtAdmins", "GT Admins", ["GT Admin", "District GT Admin"]),
        UserType("stateAdmins", "State Admins", ["State Admin", "SEA"]),
    ]


@dataclass
class ReportConfig:
    features: FeatureFlags = _section(FeatureFlags)
    ai: AISettings = _section(AISettings)
    azure: AzureSettings = _section(AzureSettings)
    jmx_file: JmxFileSettings = _section(JmxFileSettings)
    user_types: List[UserType] = _items(default_user_types, UserType)
    environment: EnvironmentSettings = _section(EnvironmentSettings)
    thread_counting: ThreadCounting = _section(ThreadCounting)
    output_dir: str = DEFAULT_OUTPUT_DIR
    paths: PathSettings = _section(PathSettings)


# =========================
# MERGING
# =========================

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def snake_case(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


_SCALAR_CHECKS = {
    bool: lambda v: isinstance(v, bool),
    int: lambda v: isinstance(v, int) and not isinstance(v, bool),
    float: lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    str: lambda v: isinstance(v, str),
}


def _check_scalar(annotation, value: Any, where: str) -> Any:
    """Return ``value`` if it fits the field annotation, else raise ConfigError."""
    allowed = get_args(annotation) if get_origin(annotation) is Union else (annotation,)
    if value is None:
        if type(None) in allowed:
            return value
        raise ConfigError(f"{where}: a value is required")

    checks = [_SCALAR_CHECKS[t] for t in allowed if t in _SCALAR_CHECKS]
    if not checks or any(check(value) for check in checks):
        return value
    expected = " or ".join(t.__name__ for t in allowed if t in _SCALAR_CHECKS)
    raise ConfigError(f"{where}: expected {expected}, got {type(value).__name__}")


def _build_item(item_type, element, value: Any, where: str):
    if item_type is None:
        return _check_scalar(element, value, where)
    if not isinstance(value, Mapping):
        raise ConfigError(f"{where}: expected a mapping, got {type(value).__name__}")
    return merge_into(item_type(), value, where)


def merge_into(target, source: Mapping[str, Any], where: str = "config"):
    """Layer ``source`` over the dataclass instance ``target`` in place."""
    by_name = {f.name: f for f in fields(target)}

    for raw_key, value in source.items():
        name = snake_case(str(raw_key))
        field_def = by_name.get(name)
        if field_def is None:
            logger.warning("Ignoring unknown configuration key %s.%s", where, raw_key)
            continue

        path = f"{where}.{name}"
        policy = field_def.metadata.get("policy", REPLACE)
        current = getattr(target, name)

        if policy == MERGE and is_dataclass(current):
            if value is None:
                continue
            if not isinstance(value, Mapping):
                raise ConfigError(f"{path}: expected a mapping, got {type(value).__name__}")
            merge_into(current, value, path)
        elif isinstance(current, list):
            if not isinstance(value, list):
                raise ConfigError(f"{path}: expected a list, got {type(value).__name__}")
            item_type = field_def.metadata.get("item")
            element = (get_args(field_def.type) or (Any,))[0]
            setattr(target, name, [
                _build_item(item_type, element, item, f"{path}[{i}]") for i, item in enumerate(value)
            ])
        else:
            setattr(target, name, _check_scalar(field_def.type, value, path))

    return target


def _validate(config: ReportConfig) -> None:
    for i, user_type in enumerate(config.user_types):
        if not user_type.key:
            raise ConfigError(f"config.user_types[{i}]: 'key' is required")
        if not user_type.display_name:
            user_type.display_name = user_type.key

    try:
        re.compile(config.environment.url_pattern)
    except re.error as e:
        raise ConfigError(f"config.environment.url_pattern is not a valid regex: {e}") from e

    for name in ("ramp_up_window_ms", "execution_gap_ms"):
        value = getattr(config.thread_counting, name)
        if not isinstance(value, int) or isinstance(value, bool):
            raise ConfigError(f"config.thread_counting.{name} must be an integer")


def apply_environment(config: ReportConfig, environ: Optional[Mapping[str, str]] = None) -> ReportConfig:
    """Fill empty credentials from environment variables."""
    environ = os.environ if environ is None else environ
    for section_name, attr, var in ENV_OVERRIDES:
        section = getattr(config, section_name)
        if not getattr(section, attr) and environ.get(var):
            setattr(section, attr, environ[var])
    return config


# =========================
# LOADING
# =========================

def load_config_file(config_path: str) -> Dict[str, Any]:
    """Load configuration from JSON or YAML file."""
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            content = f.read()
    except OSError as e:
        raise ConfigError(f"Failed to load config file {config_path}: {e}") from e

    try:
        if config_path.endswith(".json"):
            data = json.loads(content)
        elif config_path.endswith((".yaml", ".yml")):
            data = yaml.safe_load(content)
        elif content.strip().startswith("{"):
            data = json.loads(content)
        else:
            data = yaml.safe_load(content)
    except (ValueError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to parse config file {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping at the top level")
    return data


def build_config(overrides: Optional[Mapping[str, Any]] = None,
                 environ: Optional[Mapping[str, str]] = None) -> ReportConfig:
    config = ReportConfig()
    if overrides:
        merge_into(config, overrides)
    _validate(config)
    return apply_environment(config, environ)


def find_default_config(cwd: Optional[str] = None) -> Optional[str]:
    cwd = cwd or os.getcwd()
    for name in DEFAULT_CONFIG_FILES:
        candidate = os.path.join(cwd, name)
        if os.path.isfile(candidate):
            return candidate
    return None


def load_config(config_path: Optional[str] = None,
                environ: Optional[Mapping[str, str]] = None,
                cwd: Optional[str] = None) -> ReportConfig:
    """
    Build the effective configuration.

    An explicit ``config_path`` must exist. Without one, ``config.yaml``,
    ``config.yml`` or ``config.json`` in the working directory is used if
    present, otherwise the defaults.
    """
    if config_path:
        if not os.path.exists(config_path):
            raise ConfigError(f"Config file not found: {config_path}")
        path = config_path
    else:
        path = find_default_config(cwd)

    overrides: Dict[str, Any] = {}
    if path:
        overrides = load_config_file(path)
        logger.info("Configuration loaded from %s", path)

    return build_config(overrides, environ)
