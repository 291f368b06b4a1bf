"""
Lambda function registry.

Loads functions.yml and provides name-to-config mapping.
Merges default environment variables into function-specific settings.
"""

from typing import Dict, Any, Iterator, Optional, Tuple
import yaml
import logging
import os
import string

from pydantic import ValidationError

from ..config import config
from ..models.function import FunctionEntity

logger = logging.getLogger("gateway.function_registry")


class FunctionRegistry:
    def __init__(self, config_path: Optional[str] = None):
        self._registry: Dict[str, FunctionEntity] = {}
        self._defaults: Dict[str, Any] = {}
        self.config_path = config_path or config.FUNCTIONS_CONFIG_PATH
        self._loaded = False

    def load_functions_config(self, force: bool = False) -> Dict[str, FunctionEntity]:
        """
        Load and cache functions.yml.

        A file that fails to parse keeps the previously loaded functions.

        Returns:
            Dict of function name -> entity
        """
        if self._loaded and not force:
            return self._registry

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                # Substitute environment variables using string.Template.
                template = string.Template(f.read())

                mapping = os.environ.copy()
                if "LOG_LEVEL" not in mapping:
                    mapping["LOG_LEVEL"] = "INFO"

                content = template.safe_substitute(mapping)
                cfg = yaml.safe_load(content) or {}

        except FileNotFoundError:
            logger.warning(f"Functions config not found at {self.config_path}")
            self._registry = {}
            self._defaults = {}
            self._loaded = True
            return self._registry

        except yaml.YAMLError as e:
            logger.error(f"Error parsing functions config: {e}")
            return self._registry

        self._defaults = cfg.get("defaults") or {}
        registry = {}
        for name, data in (cfg.get("functions") or {}).items():
            try:
                registry[name] = self._build_entity(name, data or {})
            except ValidationError as e:
                logger.error(f"Invalid definition for function '{name}': {e}")

        self._registry = registry
        self._loaded = True
        logger.info(f"Loaded {len(self._registry)} functions from {self.config_path}")

        return self._registry

    def _build_entity(self, name: str, data: Dict[str, Any]) -> FunctionEntity:
        # Merge defaults first, then function-specific (function wins).
        merged_env = {}
        merged_env.update(self._defaults.get("environment") or {})
        merged_env.update(data.get("environment") or {})

        merged = dict(self._defaults)
        merged.update(data)
        merged["environment"] = {k: str(v) for k, v in merged_env.items()}
        merged["name"] = name

        return FunctionEntity.model_validate(merged)

    def register(self, entity: FunctionEntity) -> None:
        """Add or replace a function without a config file."""
        self._registry[entity.name] = entity
        self._loaded = True

    def get_function_config(self, function_name: str) -> Optional[FunctionEntity]:
        """
        Get configuration by function name.

        Args:
            function_name: function key

        Returns:
            Function entity (with defaults merged), or None if missing
        """
        return self._registry.get(function_name)

    def items(self) -> Iterator[Tuple[str, FunctionEntity]]:
        return iter(list(self._registry.items()))
