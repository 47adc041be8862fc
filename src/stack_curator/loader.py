"""Stack document loading and validation."""
import logging
from pathlib import Path
from typing import Any, Dict, Union

import yaml
from pydantic import ValidationError

from stack_curator.errors import ConfigurationError
from stack_curator.models import Stack

logger = logging.getLogger(__name__)


def parse_stack(document: Dict[str, Any]) -> Stack:
    """Validate an already parsed stack document.

    Args:
        document: Mapping produced by a YAML/JSON parser

    Returns:
        Validated Stack

    Raises:
        ConfigurationError: If required fields are missing or invalid
    """
    if not isinstance(document, dict):
        raise ConfigurationError(
            f"stack document must be a mapping, got {type(document).__name__}"
        )
    try:
        return Stack.model_validate(document)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigurationError(f"invalid stack document: {problems}") from e


def load_stack(path: Union[str, Path]) -> Stack:
    """Read and validate a YAML stack document from disk."""
    stack_path = Path(path)
    try:
        with open(stack_path, 'r', encoding='utf-8') as f:
            document = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"cannot read stack document {stack_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"cannot parse stack document {stack_path}: {e}") from e

    stack = parse_stack(document)
    logger.info(
        f"Loaded instance stack {stack.name} with {len(stack.groups)} group(s): "
        f"{[g.name for g in stack.groups]}"
    )
    return stack
