# src/auditor/registry.py
import logging
from typing import Dict, List, Optional, Set, Type, Iterable

from .core import AnalyzerBase
from .analyzers.widget_pattern import WidgetPatternAnalyzer
from .analyzers.reference_integrity import ReferenceIntegrityAnalyzer
from .analyzers.cross_model_conflict import CrossModelConflictAnalyzer

logger = logging.getLogger(__name__)


class AnalyzerRegistry:
    """
    Central registry of the available analyzers.

    The set is closed and enumerated here, in dispatch order; there is no
    runtime discovery. The registry also exposes the union of the issue
    kinds every analyzer declares with @audit_spec.
    """

    _analyzers: Dict[str, Type[AnalyzerBase]] = {
        cls.name: cls for cls in (
            WidgetPatternAnalyzer,
            ReferenceIntegrityAnalyzer,
            CrossModelConflictAnalyzer,
        )
    }

    # Kinds produced by the engine itself rather than by an analyzer.
    ENGINE_CODES = frozenset({"analyzer-failure", "malformed-fragment"})

    @classmethod
    def names(cls) -> List[str]:
        return list(cls._analyzers)

    @classmethod
    def get(cls, name: str) -> Optional[Type[AnalyzerBase]]:
        return cls._analyzers.get(name)

    @classmethod
    def create(cls, enabled: Optional[Iterable[str]] = None) -> List[AnalyzerBase]:
        """
        Instantiates the enabled analyzers in registry order.
        None enables everything; unknown names are logged and ignored.
        """
        if enabled is None:
            return [analyzer() for analyzer in cls._analyzers.values()]

        wanted = list(enabled)
        for name in wanted:
            if name not in cls._analyzers:
                logger.warning(f"Unknown analyzer '{name}' ignored. Known: {', '.join(cls.names())}")
        return [analyzer() for name, analyzer in cls._analyzers.items() if name in wanted]

    @classmethod
    def all_codes(cls) -> Set[str]:
        codes: Set[str] = set(cls.ENGINE_CODES)
        for analyzer in cls._analyzers.values():
            codes.update(analyzer.defined_codes())
        return codes

    @classmethod
    def codes_by_analyzer(cls) -> Dict[str, List[str]]:
        return {name: sorted(analyzer.defined_codes()) for name, analyzer in cls._analyzers.items()}
