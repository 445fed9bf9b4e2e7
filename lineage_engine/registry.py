"""
Source Registry — the fixed reliability prior of every data source.

The reliability table is loaded once and injected into the scorer and the
reconciler; tests substitute their own registry instead of patching
globals.
"""

from types import MappingProxyType
from typing import List, Mapping

from lineage_engine.errors import ConfigValidationError, UnknownSourceError
from lineage_engine.models.source import SOURCE_RELIABILITY, DataSource

_DECLARATION_ORDER = {source: index for index, source in enumerate(DataSource)}


class SourceRegistry:
    """Read-only lookup of source reliability and tie-break rank."""

    def __init__(
        self,
        reliability: Mapping[DataSource, float] = SOURCE_RELIABILITY,
        require_complete: bool = True,
    ):
        table = {}
        for source, weight in reliability.items():
            try:
                source = DataSource(source)
            except ValueError:
                raise UnknownSourceError([source]) from None
            if not 0.0 <= weight <= 1.0:
                raise ConfigValidationError(
                    f"reliability.{source.value}",
                    f"weight {weight} is outside [0, 1]",
                )
            table[source] = float(weight)

        if require_complete:
            missing = [s for s in DataSource if s not in table]
            if missing:
                raise UnknownSourceError(missing)

        self._reliability = MappingProxyType(table)

    def __contains__(self, source: object) -> bool:
        return source in self._reliability

    @property
    def table(self) -> Mapping[DataSource, float]:
        return self._reliability

    def reliability(self, source: DataSource) -> float:
        """Prior reliability of a source. Unregistered sources are fatal."""
        try:
            return self._reliability[source]
        except KeyError:
            raise UnknownSourceError([source]) from None

    def rank(self, source: DataSource) -> int:
        """Tie-break rank: lower wins. Follows DataSource declaration order."""
        return _DECLARATION_ORDER[source]

    def sources(self) -> List[DataSource]:
        """Registered sources, most reliable first."""
        return sorted(self._reliability, key=lambda s: (-self._reliability[s], self.rank(s)))


DEFAULT_SOURCE_REGISTRY = SourceRegistry()
