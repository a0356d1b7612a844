"""Configuration loader with YAML parsing and environment variable substitution."""

import yaml
import re
from pathlib import Path
from typing import Any, Dict, Optional
from .models import ReceiverConfig
from .settings import Environment, OsEnvironment


class ConfigLoader:
    """Load and validate host metrics receiver configuration."""

    @staticmethod
    def load_from_file(config_path: str, environment: Optional[Environment] = None) -> ReceiverConfig:
        """
        Load configuration from YAML file with environment variable substitution.

        Args:
            config_path: Path to YAML configuration file
            environment: Source for ${VAR} placeholders (process environment by default)

        Returns:
            ReceiverConfig: Validated configuration object

        Raises:
            FileNotFoundError: If config file doesn't exist
            yaml.YAMLError: If YAML parsing fails
            pydantic.ValidationError: If configuration validation fails
        """
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_file, 'r') as f:
            raw_config = yaml.safe_load(f)

        return ConfigLoader.load_from_dict(raw_config or {}, environment)

    @staticmethod
    def load_from_dict(raw_config: Dict[str, Any], environment: Optional[Environment] = None) -> ReceiverConfig:
        """
        Validate an already parsed configuration.

        Per-scraper sections are kept generic here; each scraper factory
        validates its own section when the receiver is built.
        """
        environment = environment or OsEnvironment()

        # Substitute environment variables
        raw_config = ConfigLoader._substitute_env_vars(raw_config, environment)

        # Validate with Pydantic
        return ReceiverConfig(**raw_config)

    @staticmethod
    def _substitute_env_vars(obj: Any, environment: Environment) -> Any:
        """
        Recursively substitute ${ENV_VAR} placeholders with environment values.

        Args:
            obj: Object to process (str, dict, list, or primitive)
            environment: Variable source

        Returns:
            Object with environment variables substituted
        """
        if isinstance(obj, str):
            # Unset variables become empty strings
            pattern = r'\$\{(\w+)\}'
            return re.sub(pattern, lambda m: environment.lookup(m.group(1)) or '', obj)

        elif isinstance(obj, dict):
            return {k: ConfigLoader._substitute_env_vars(v, environment) for k, v in obj.items()}

        elif isinstance(obj, list):
            return [ConfigLoader._substitute_env_vars(item, environment) for item in obj]

        return obj
