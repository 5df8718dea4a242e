# migrator/clients/abi_loader.py

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..core.errors import ConfigError
from ..core.logging import LoggingMixin


class ABILoader(LoggingMixin):
    """Loads the ledger contract ABI from the filesystem with caching"""

    def __init__(self, abi_base_path: Optional[Path] = None):
        self.abi_base_path = abi_base_path or Path.cwd()
        self._abi_cache: Dict[Path, List[Dict[str, Any]]] = {}

    def load_abi(self, abi_path: Path) -> List[Dict[str, Any]]:
        path = abi_path if abi_path.is_absolute() else self.abi_base_path / abi_path

        if path in self._abi_cache:
            return self._abi_cache[path]

        if not path.exists():
            raise ConfigError("ABI file not found", {"abi_path": str(path)})

        try:
            with open(path, 'r') as f:
                abi_data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError("Invalid JSON in ABI file", {"abi_path": str(path), "error": str(e)}) from e

        # Either a bare ABI array or a build artifact wrapping it under 'abi'
        if isinstance(abi_data, dict) and 'abi' in abi_data:
            abi = abi_data['abi']
        else:
            abi = abi_data

        if not isinstance(abi, list):
            raise ConfigError("ABI is not a list", {"abi_path": str(path), "abi_type": type(abi).__name__})

        self._abi_cache[path] = abi

        self.log_debug("ABI loaded successfully",
                       abi_path=str(path),
                       abi_functions=len([item for item in abi if item.get('type') == 'function']))
        return abi
