"""
LLMock Common Utilities

Shared helpers for reading configuration files and inspecting mock
directives carried on requests.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .exceptions import ConfigurationError


# Headers the request mutator writes; the server reads them back
MOCK_DIRECTIVE_HEADERS = [
    'x-llm-backend',
    'x-error-code',
    'x-error-message',
    'x-error-details',
]


def safe_json_parse(json_string: Optional[str], default: Any = None) -> Any:
    """
    Safely parse JSON string with error handling.

    Args:
        json_string: JSON string to parse
        default: Default value to return if parsing fails

    Returns:
        Parsed JSON object, or default if parsing fails

    Example:
        data = safe_json_parse(context.shape, default={})
    """
    if not json_string:
        return default

    try:
        return json.loads(json_string)
    except (json.JSONDecodeError, TypeError, ValueError):
        return default


class ConfigFileLoader:
    """
    Standardized loader for LLMock configuration files.

    Handles both formats accepted by the server:
    - YAML (``.yaml`` / ``.yml``)
    - JSON (anything else)

    The top level must be a mapping. An optional ``llmock:`` wrapper key is
    unwrapped so the same file can hold other sections.

    Example:
        loader = ConfigFileLoader("llmock.yaml")
        data = loader.load()
    """

    WRAPPER_KEY = 'llmock'

    def __init__(self, file_path: str):
        """
        Initialize config loader.

        Args:
            file_path: Path to YAML or JSON config file
        """
        self.file_path = Path(file_path)

    def load(self) -> Dict[str, Any]:
        """
        Load the config mapping.

        Returns:
            Configuration dictionary

        Raises:
            FileNotFoundError: If the config file doesn't exist
            ConfigurationError: If the content is not a mapping or can't be parsed
        """
        if not self.file_path.exists():
            raise FileNotFoundError(f"Config file not found: {self.file_path}")

        with open(self.file_path, 'r', encoding='utf-8') as f:
            try:
                if self.file_path.suffix.lower() in ('.yaml', '.yml'):
                    data = yaml.safe_load(f)
                else:
                    data = json.load(f)
            except (yaml.YAMLError, json.JSONDecodeError) as e:
                raise ConfigurationError(f"Could not parse {self.file_path}: {e}") from e

        if data is None:
            return {}

        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Unexpected format in {self.file_path}. "
                f"Expected a mapping, got {type(data).__name__}"
            )

        if self.WRAPPER_KEY in data and isinstance(data[self.WRAPPER_KEY], dict):
            return data[self.WRAPPER_KEY]

        return data


def filter_mock_headers(
    headers: Dict[str, str],
    additional_headers: Optional[List[str]] = None
) -> Dict[str, str]:
    """
    Filter headers down to the mock directive headers.

    Args:
        headers: Dictionary of headers to filter
        additional_headers: Optional list of additional header names to include

    Returns:
        Filtered dictionary with lowercase keys
    """
    interesting = list(MOCK_DIRECTIVE_HEADERS)

    if additional_headers:
        interesting.extend(h.lower() for h in additional_headers)

    return {k.lower(): v for k, v in headers.items() if k.lower() in interesting}
