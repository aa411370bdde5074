from __future__ import annotations


import os
import json
import logging
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional


from srs_export.utils.general_utils import DEFAULT_DATETIME_FORMAT, get_source_dir
from srs_export.utils.json_format_utils import DEFAULT_DECIMAL_PLACES, DEFAULT_INDENT_SIZE


if TYPE_CHECKING:
    pass


logger = logging.getLogger(__name__)


DEFAULT_ROOT_KEY = "srsHelperData"
DEFAULT_DOSE_COMMENT = "Exported from Eclipse ESAPI"
DEFAULT_DOSE_NOTE = "Full dose grid available through Eclipse context - use getDoseAtPoint for specific values"
UNKNOWN_SENTINEL = "Unknown"
NOT_AVAILABLE_SENTINEL = "Not Available"


class ExportConfig:
    """Stateless settings shared by every document build."""

    # Setting name -> (default value, expected type)
    DEFAULTS: Dict[str, tuple] = {
        "indent_size": (DEFAULT_INDENT_SIZE, int),
        "decimal_places": (DEFAULT_DECIMAL_PLACES, int),
        "root_key": (DEFAULT_ROOT_KEY, str),
        "datetime_format": (DEFAULT_DATETIME_FORMAT, str),
        "dose_comment": (DEFAULT_DOSE_COMMENT, str),
        "dose_note": (DEFAULT_DOSE_NOTE, str),
        "unknown_sentinel": (UNKNOWN_SENTINEL, str),
        "not_available_sentinel": (NOT_AVAILABLE_SENTINEL, str),
    }

    def __init__(
        self,
        indent_size: int = DEFAULT_INDENT_SIZE,
        decimal_places: int = DEFAULT_DECIMAL_PLACES,
        root_key: str = DEFAULT_ROOT_KEY,
        datetime_format: str = DEFAULT_DATETIME_FORMAT,
        dose_comment: str = DEFAULT_DOSE_COMMENT,
        dose_note: str = DEFAULT_DOSE_NOTE,
        unknown_sentinel: str = UNKNOWN_SENTINEL,
        not_available_sentinel: str = NOT_AVAILABLE_SENTINEL,
    ) -> None:
        if indent_size < 0:
            raise ValueError(f"indent_size must be non-negative, got {indent_size}.")
        if decimal_places < 0:
            raise ValueError(f"decimal_places must be non-negative, got {decimal_places}.")
        self.indent_size = indent_size
        self.decimal_places = decimal_places
        self.root_key = root_key
        self.datetime_format = datetime_format
        self.dose_comment = dose_comment
        self.dose_note = dose_note
        self.unknown_sentinel = unknown_sentinel
        self.not_available_sentinel = not_available_sentinel

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ExportConfig:
        """
        Build a config from a (possibly partial) mapping.

        Unknown keys are ignored and values of the wrong type fall back to the default,
        each with a warning.
        """
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            if key not in cls.DEFAULTS:
                logger.warning(f"Ignoring unknown export setting '{key}'.")
                continue
            default, expected_type = cls.DEFAULTS[key]
            # bool is an int subclass but never a valid count
            if not isinstance(value, expected_type) or isinstance(value, bool):
                logger.warning(
                    f"Export setting '{key}' has value of type {type(value).__name__} "
                    f"(expected {expected_type.__name__}); using default '{default}'."
                )
                continue
            if expected_type is int and value < 0:
                logger.warning(f"Export setting '{key}' must be non-negative, got {value}; using default '{default}'.")
                continue
            kwargs[key] = value
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return {key: getattr(self, key) for key in self.DEFAULTS}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ExportConfig):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"ExportConfig({self.to_dict()!r})"


class ConfigManager:
    """Loads export settings from a JSON configuration file."""

    DEFAULT_CONFIG_FILENAME = "export_config.json"

    def __init__(self, config_path: Optional[str] = None) -> None:
        self.config_path: str = config_path or self._default_config_path()
        self.export_config: ExportConfig = self._load_export_config()

    @classmethod
    def _default_config_path(cls) -> str:
        """Config file next to the source directory, in 'config_files'."""
        project_dir = os.path.dirname(get_source_dir())
        return os.path.join(project_dir, "config_files", cls.DEFAULT_CONFIG_FILENAME)

    def _load_config(self, file_path: str) -> Optional[Any]:
        """Load JSON configuration file."""
        if not os.path.exists(file_path):
            logger.info(f"Configuration file '{file_path}' not found; using default export settings.")
            return None
        try:
            with open(file_path, "r", encoding="utf-8") as file:
                return json.load(file)
        except Exception:
            logger.exception(f"Unable to load configuration file '{file_path}'.")
            return None

    def _load_export_config(self) -> ExportConfig:
        """Load and validate export settings, falling back to defaults."""
        loaded_data = self._load_config(self.config_path)
        if loaded_data is None:
            return ExportConfig()
        if not isinstance(loaded_data, dict):
            logger.warning(
                f"Configuration file '{self.config_path}' has data of type {type(loaded_data).__name__} "
                f"(expected dict); using default export settings."
            )
            return ExportConfig()
        return ExportConfig.from_dict(loaded_data)

    def reload(self) -> ExportConfig:
        """Re-read the configuration file."""
        self.export_config = self._load_export_config()
        return self.export_config
