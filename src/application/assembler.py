"""Per-job configuration assembly: template + override row + defaults."""

import copy
import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from domain.models import ConfigurationUnavailable, JobConfiguration, MatchStrategy, WorkItem
from domain.protocols import IOverrideTable
from infrastructure.overrides.field_mapping import DEFAULT_FIELD_MAPPING, FieldMapping
from shared.logging import get_logger
from shared.types import PathLike

logger = get_logger(__name__)

Resolution = Union[JobConfiguration, ConfigurationUnavailable]


def load_template(path: Optional[PathLike]) -> Optional[Dict[str, Any]]:
    """
    Load the shared template configuration.

    A missing or malformed template is logged and treated as absent.

    Args:
        path: JSON template file, or None

    Returns:
        Template mapping, or None
    """
    if not path:
        return None

    path = Path(path)
    if not path.exists():
        logger.warning(f"[WARN] Template configuration not found: {path}")
        return None

    try:
        data = json.loads(path.read_text(encoding="utf-8-sig"))
    except (OSError, ValueError) as e:
        logger.warning(f"[WARN] Could not load template configuration {path}: {e}")
        return None

    if not isinstance(data, dict):
        logger.warning(f"[WARN] Template configuration {path} is not a JSON object, ignoring")
        return None

    logger.info(f"[OK] Template configuration loaded: {path.name} ({len(data)} fields)")
    return data


class ConfigurationAssembler:
    """
    Resolves the configuration of each work item.

    The template and override table are read-only after construction, so
    one assembler can be shared by every job of a run.
    """

    def __init__(
        self,
        template: Optional[Mapping[str, Any]] = None,
        overrides: Optional[IOverrideTable] = None,
        mapping: FieldMapping = DEFAULT_FIELD_MAPPING
    ):
        self.template = copy.deepcopy(dict(template)) if template is not None else None
        self.overrides = overrides
        self.mapping = mapping
        self._logger = get_logger(__name__)

        if overrides is not None:
            missing = mapping.missing_recommended(list(overrides.headers))
            if missing:
                self._logger.warning(f"[WARN] Override table is missing recommended columns: {', '.join(missing)}")
            self._logger.info(mapping.summary())

    def match(self, item: WorkItem) -> Optional[Tuple[str, MatchStrategy]]:
        """
        Find the override row key for an item.

        First match wins: exact identity, exact identity without extension,
        case-insensitive either form, then substring containment either way.

        Returns:
            (matched key, strategy), or None
        """
        if self.overrides is None:
            return None

        if self.overrides.get(item.identity) is not None:
            return item.identity, MatchStrategy.EXACT

        if self.overrides.get(item.stem) is not None:
            return item.stem, MatchStrategy.EXACT_STEM

        keys = [k for k in self.overrides.keys() if k]
        names = (item.identity.casefold(), item.stem.casefold())

        for key in keys:
            if key.casefold() in names:
                return key, MatchStrategy.CASE_INSENSITIVE

        for key in keys:
            folded = key.casefold()
            if any(folded in name or name in folded for name in names):
                return key, MatchStrategy.SUBSTRING

        return None

    def resolve(self, item: WorkItem) -> Resolution:
        """
        Build the serialized configuration for one item.

        Args:
            item: Work item

        Returns:
            JobConfiguration, or ConfigurationUnavailable when there is
            neither a template nor a matching override row
        """
        matched = self.match(item)
        row = self.overrides.get(matched[0]) if matched else None

        if self.template is None and row is None:
            self._logger.warning(f"[WARN] {item.identity}: no override row and no template")
            return ConfigurationUnavailable(
                reason="No configuration available (not in override table and no template)"
            )

        if matched:
            key, strategy = matched
            self._logger.info(f"{item.identity}: override row '{key}' matched by {strategy.value}")
            if strategy is MatchStrategy.SUBSTRING:
                self._logger.warning(
                    f"[WARN] {item.identity}: substring match on '{key}' may belong to another drawing"
                )
        else:
            self._logger.info(f"{item.identity}: no override row, using template only")

        content = self.merge(self.template, row)
        return JobConfiguration(
            content=json.dumps(content, indent=2, ensure_ascii=False),
            from_template=self.template is not None,
            from_overrides=row is not None,
            match_strategy=matched[1] if matched else None,
            matched_key=matched[0] if matched else None,
        )

    def merge(
        self,
        template: Optional[Mapping[str, Any]],
        row: Optional[Mapping[str, str]]
    ) -> Dict[str, Any]:
        """Template fields, then defaults for absent fields, then coerced override cells."""
        content: Dict[str, Any] = copy.deepcopy(dict(template)) if template else {}

        for field_name, value in self.mapping.defaults.items():
            if field_name not in content:
                content[field_name] = copy.deepcopy(value)

        if row:
            content.update(self.mapping.apply(row))

        return content

    def items_without_overrides(self, items: Iterable[WorkItem]) -> List[WorkItem]:
        """Items that no override row matches; empty when no table is loaded."""
        if self.overrides is None:
            self._logger.warning("[WARN] No override table loaded, nothing to check")
            return []
        return [item for item in items if self.match(item) is None]
