"""Configuration loader with YAML support and environment variable substitution."""

import copy
import os
import re
from typing import Any, Dict

import yaml

from exporters.page_geometry import PAPER_SIZES, Orientation, parse_margin
from models import ExportFormat

DEFAULT_CONFIG: Dict[str, Any] = {
    'export': {
        'format': ExportFormat.DOCX.value,
        'output_directory': './exports',
        'filename_template': '{title}',
        'page_size': 'A4',
        'orientation': 'portrait',
        'margins': None,
        'include_title': False,
        'author': None,
        'convert_diagrams': True,
    },
    'diagrams': {
        'container_classes': ['diagram', 'mermaid-container'],
        'max_image_width': 600,
    },
    'print': {
        'completion_timeout': 2.0,
        'settle_delay': 0.1,
    },
    'logging': {
        'level': None,
        'file': None,
    },
}


class ConfigLoader:
    """Handles loading and validation of configuration files."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}')

    @classmethod
    def load(cls, config_path: str) -> Dict[str, Any]:
        """
        Load configuration from YAML file with environment variable substitution.

        Values missing from the file are filled in from ``DEFAULT_CONFIG``.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            Parsed configuration dictionary

        Raises:
            FileNotFoundError: If config file doesn't exist
            yaml.YAMLError: If YAML parsing fails
        """
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f)

        if config_data is None:
            config_data = {}
        if not isinstance(config_data, dict):
            raise ValueError("Configuration file must contain a dictionary")

        config_data = cls._substitute_env_vars_recursive(config_data)

        return cls.with_defaults(config_data)

    @classmethod
    def with_defaults(cls, config: Dict[str, Any]) -> Dict[str, Any]:
        """Return a copy of ``config`` layered over ``DEFAULT_CONFIG``."""
        return _deep_merge(DEFAULT_CONFIG, config or {})

    @classmethod
    def validate(cls, config: Dict[str, Any]) -> None:
        """
        Validate configuration for correct values.

        Args:
            config: Configuration dictionary to validate

        Raises:
            ValueError: If validation fails
        """
        fmt = get_nested(config, 'export.format', ExportFormat.DOCX.value)
        valid_formats = [f.value for f in ExportFormat]
        if fmt not in valid_formats:
            raise ValueError(f"export.format must be one of: {', '.join(valid_formats)}")

        page_size = get_nested(config, 'export.page_size', 'A4')
        if page_size not in PAPER_SIZES:
            raise ValueError(
                f"export.page_size must be one of: {', '.join(PAPER_SIZES)}"
            )

        orientation = get_nested(config, 'export.orientation', 'portrait')
        if orientation not in [o.value for o in Orientation]:
            raise ValueError("export.orientation must be 'portrait' or 'landscape'")

        margins = get_nested(config, 'export.margins')
        if margins is not None:
            try:
                parse_margin(str(margins), strict=True)
            except ValueError:
                raise ValueError(
                    f"export.margins '{margins}' must be a length such as 2cm, 20mm, 1in or 72px"
                )

        for flag in ('export.include_title', 'export.convert_diagrams'):
            value = get_nested(config, flag)
            if value is not None and not isinstance(value, bool):
                raise ValueError(f"{flag} must be a boolean")

        output_dir = get_nested(config, 'export.output_directory')
        if output_dir and os.path.exists(output_dir) and not os.path.isdir(output_dir):
            raise ValueError(f"export.output_directory '{output_dir}' is not a directory")

        template = get_nested(config, 'export.filename_template', '{title}')
        if not isinstance(template, str) or not template.strip():
            raise ValueError("export.filename_template must be a non-empty string")

        classes = get_nested(config, 'diagrams.container_classes', [])
        if not isinstance(classes, list) or not all(isinstance(c, str) and c for c in classes):
            raise ValueError("diagrams.container_classes must be a list of class names")

        max_width = get_nested(config, 'diagrams.max_image_width', 600)
        if not isinstance(max_width, (int, float)) or max_width <= 0:
            raise ValueError("diagrams.max_image_width must be a positive number")

        for key in ('print.completion_timeout', 'print.settle_delay'):
            value = get_nested(config, key, 0)
            if not isinstance(value, (int, float)) or value < 0:
                raise ValueError(f"{key} must be a non-negative number")

    @classmethod
    def merge_with_args(cls, config: Dict[str, Any], args) -> Dict[str, Any]:
        """
        Merge configuration file with CLI arguments.
        CLI arguments take precedence over config file values.

        Args:
            config: Base configuration dictionary
            args: CLI arguments with attributes matching config keys

        Returns:
            Merged configuration dictionary
        """
        merged = copy.deepcopy(config)

        for section in ('export', 'logging'):
            if section not in merged or merged[section] is None:
                merged[section] = {}

        arg_map = {
            'format': 'format',
            'output_dir': 'output_directory',
            'filename': 'filename',
            'page_size': 'page_size',
            'orientation': 'orientation',
            'margins': 'margins',
            'author': 'author',
        }
        for arg_name, key in arg_map.items():
            value = getattr(args, arg_name, None)
            if value:
                merged['export'][key] = value

        if getattr(args, 'include_title', False):
            merged['export']['include_title'] = True

        if getattr(args, 'no_diagrams', False):
            merged['export']['convert_diagrams'] = False

        if getattr(args, 'log_file', None):
            merged['logging']['file'] = args.log_file

        verbose = getattr(args, 'verbose', 0)
        if verbose:
            merged['logging']['level'] = 'DEBUG' if verbose >= 2 else 'INFO'

        return merged

    @classmethod
    def _substitute_env_vars_recursive(cls, data: Any) -> Any:
        """Recursively substitute environment variables in data structure."""
        if isinstance(data, dict):
            return {key: cls._substitute_env_vars_recursive(value) for key, value in data.items()}
        elif isinstance(data, list):
            return [cls._substitute_env_vars_recursive(item) for item in data]
        elif isinstance(data, str):
            return cls._substitute_env_vars(data)
        else:
            return data

    @classmethod
    def _substitute_env_vars(cls, value: str) -> str:
        """Substitute environment variables in a string value."""
        def replace_match(match):
            env_value = os.getenv(match.group(1))
            return env_value if env_value is not None else match.group(0)

        return cls.ENV_VAR_PATTERN.sub(replace_match, value)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def get_nested(config: dict, path: str, default: Any = None) -> Any:
    """Safely retrieve nested configuration values using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., "export.page_size")
        default: Default value if path doesn't exist

    Returns:
        Value at the nested path or default
    """
    keys = path.split('.')
    value = config

    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default

    return value


__all__ = ['ConfigLoader', 'DEFAULT_CONFIG', 'get_nested']
