"""Coverage aggregator: persists element coverage across test-runner processes.

Every worker process builds its own ``CoverageAggregator`` pointed at the same
JSON file and passes it to whatever needs it. Records are keyed by canonical
identity (``normalize_for_matching(selector) + "|" + type``).

Saving is merge-on-save: the file is re-read, folded into memory, and the
result replaces the file atomically. Two workers whose saves interleave inside
that read-merge-replace window can still lose the earlier one's update; there
is no OS-level lock.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Optional, Sequence

from uicov.coverage.calculator import percentage
from uicov.coverage.recommendations import recommend_for_record
from uicov.matching.predicates import Compound, parse_compound, split_compounds
from uicov.models.config import CoverageConfig
from uicov.models.coverage import (
    AggregatedCoverage,
    CoverageEntry,
    CoverageRecord,
    CoverageStore,
    DiscoveryEntry,
    FileCoverage,
    PageCoverageSummary,
    TypeCoverage,
    UncoveredRecommendation,
)
from uicov.models.element import ElementDescriptor
from uicov.selectors.normalizer import identity_key
from uicov.url_utils import UNKNOWN_URL, url_from_discovery_context

logger = logging.getLogger(__name__)

DEFAULT_DATA_FILE = ".coverage-data.json"
_PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}
_DESCRIPTOR_FIELDS = ("text", "id", "class_name", "role", "accessible_name")


def _now_ms() -> int:
    return int(time.time() * 1000)


def _attribute_signature(selector: str) -> Optional[tuple]:
    """Order- and quote-insensitive signature of a single-compound selector."""
    segments = split_compounds(selector)
    if len(segments) != 1:
        return None
    compound: Optional[Compound] = parse_compound(segments[0])
    if compound is None or not compound.attributes:
        return None
    return (
        compound.tag,
        tuple(sorted(compound.ids)),
        tuple(sorted(compound.classes)),
        tuple(sorted((a.name, a.op or "", a.value or "") for a in compound.attributes)),
        tuple(sorted(compound.text)),
    )


def _merge_discoveries(a: list[DiscoveryEntry], b: list[DiscoveryEntry]) -> list[DiscoveryEntry]:
    seen: set[tuple] = set()
    merged = []
    for entry in a + b:
        marker = (entry.url, entry.timestamp, entry.discovery_source)
        if marker not in seen:
            seen.add(marker)
            merged.append(entry)
    return sorted(merged, key=lambda e: e.timestamp)


def _merge_coverage(a: list[CoverageEntry], b: list[CoverageEntry]) -> list[CoverageEntry]:
    by_test: dict[tuple[str, str], CoverageEntry] = {}
    for entry in a + b:
        marker = (entry.test_file, entry.test_name)
        current = by_test.get(marker)
        if current is None or entry.timestamp < current.timestamp:
            by_test[marker] = entry
    return sorted(by_test.values(), key=lambda e: e.timestamp)


def merge_records(target: CoverageRecord, source: CoverageRecord) -> None:
    """Fold ``source`` into ``target``. Loses no discovery or coverage entry."""
    firsts = [t for t in (target.first_seen_at, source.first_seen_at) if t]
    target.first_seen_at = min(firsts) if firsts else 0
    target.last_seen_at = max(target.last_seen_at, source.last_seen_at)
    target.discovered_in = _merge_discoveries(target.discovered_in, source.discovered_in)
    target.covered_by = _merge_coverage(target.covered_by, source.covered_by)
    for name in _DESCRIPTOR_FIELDS:
        if not getattr(target, name) and getattr(source, name):
            setattr(target, name, getattr(source, name))
    if target.bounding_box is None:
        target.bounding_box = source.bounding_box
    target.is_hidden = target.is_hidden and source.is_hidden


class CoverageAggregator:
    """Accumulates discovery and coverage observations in a persisted JSON store."""

    def __init__(
        self,
        output_path: str | Path = "./coverage-report",
        data_file: str = DEFAULT_DATA_FILE,
        config: CoverageConfig | None = None,
    ):
        if config is not None:
            output_path = config.output_path
            data_file = config.data_file
        self.path = Path(output_path) / data_file
        self.create_records_on_coverage = config.create_records_on_coverage if config else True
        self.store = CoverageStore()
        # canonical key -> stored key, (type, attribute signature) -> stored key
        self._by_identity: dict[str, str] = {}
        self._by_signature: dict[tuple, str] = {}

        loaded = self._read_store()
        if loaded is not None:
            self.store = loaded
            self._reindex()
            logger.info(
                "Loaded existing coverage data: %d elements, %d test files",
                len(self.store.records), len(self.store.test_coverage),
            )
        if config is not None and config.cleanup_duplicates_on_load:
            self.cleanup_duplicates()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @property
    def records(self) -> dict[str, CoverageRecord]:
        return self.store.records

    @property
    def test_coverage(self) -> dict[str, list[str]]:
        return self.store.test_coverage

    def _read_store(self, merging: bool = False) -> CoverageStore | None:
        if not self.path.exists():
            return None
        try:
            with open(self.path) as f:
                data = json.load(f)
            return CoverageStore.model_validate(data)
        except Exception as e:
            if merging:
                logger.warning(
                    "Could not read %s to merge before saving: %s. Overwriting it with in-memory data.",
                    self.path, e,
                )
            else:
                logger.warning("Failed to load coverage data from %s: %s. Starting empty.", self.path, e)
            return None

    def _index(self, stored_key: str, record: CoverageRecord) -> None:
        canonical = record.key
        if stored_key == canonical or canonical not in self._by_identity:
            self._by_identity[canonical] = stored_key
        signature = _attribute_signature(record.selector)
        if signature is not None:
            self._by_signature.setdefault((record.element_type, signature), stored_key)

    def _reindex(self) -> None:
        self._by_identity = {}
        self._by_signature = {}
        for stored_key, record in self.store.records.items():
            self._index(stored_key, record)

    def _insert(self, key: str, record: CoverageRecord) -> None:
        self.store.records[key] = record
        self._index(key, record)

    def _absorb(self, other: CoverageStore) -> None:
        """Fold another store (usually the file written by a sibling worker) into memory."""
        remap: dict[str, str] = {}
        for key, record in other.records.items():
            target = key if key in self.store.records else self._find_by_identity(record.key)
            if target is None:
                self._insert(key, record)
                remap[key] = key
            else:
                merge_records(self.store.records[target], record)
                remap[key] = target

        for test_file, keys in other.test_coverage.items():
            mine = self.store.test_coverage.setdefault(test_file, [])
            present = set(mine)
            for key in keys:
                resolved = remap.get(key, key)
                if resolved not in present:
                    mine.append(resolved)
                    present.add(resolved)

    def _save(self) -> None:
        tmp_path: Optional[str] = None
        try:
            on_disk = self._read_store(merging=True)
            if on_disk is not None:
                self._absorb(on_disk)
            self.store.last_updated = _now_ms()
            self.path.parent.mkdir(parents=True, exist_ok=True)
            payload = self.store.model_dump(by_alias=True, mode="json")
            with tempfile.NamedTemporaryFile(
                "w", dir=self.path.parent, prefix=".tmp_", suffix=".json", delete=False,
            ) as tmp:
                tmp_path = tmp.name
                json.dump(payload, tmp, indent=2)
            os.replace(tmp_path, self.path)
            tmp_path = None
            logger.debug("Saved coverage data to %s", self.path)
        except Exception as e:
            logger.warning("Failed to save coverage data to %s: %s", self.path, e)
        finally:
            if tmp_path and os.path.exists(tmp_path):
                try:
                    os.unlink(tmp_path)
                except OSError:
                    logger.debug("Could not remove temporary file %s", tmp_path)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def _find_by_identity(self, canonical_key: str) -> Optional[str]:
        if canonical_key in self.store.records:
            return canonical_key
        return self._by_identity.get(canonical_key)

    def _resolve(self, element: ElementDescriptor) -> Optional[str]:
        """Stored key of the record an element refers to, if any.

        Exact canonical key first, then flexible matching for records stored
        under non-canonical keys or spelled with attributes in another order.
        Both fallbacks are dictionary lookups.
        """
        key = identity_key(element.selector, element.element_type)
        stored = self._find_by_identity(key)
        if stored is not None:
            return stored
        signature = _attribute_signature(element.selector)
        if signature is None:
            return None
        return self._by_signature.get((element.element_type, signature))

    def get_record(self, selector: str, element_type: str) -> Optional[CoverageRecord]:
        key = self._resolve(ElementDescriptor(selector=selector, element_type=element_type))
        return self.store.records.get(key) if key else None

    # ------------------------------------------------------------------
    # Observations
    # ------------------------------------------------------------------

    def _new_record(self, element: ElementDescriptor, url: str, timestamp: int) -> CoverageRecord:
        return CoverageRecord(
            selector=element.selector,
            element_type=element.element_type,
            text=element.text,
            id=element.id,
            class_name=" ".join(element.class_names),
            role=element.role,
            accessible_name=element.accessible_name,
            first_seen_at=timestamp,
            last_seen_at=timestamp,
            discovered_in=[DiscoveryEntry(
                url=url, timestamp=timestamp, discovery_source=element.discovery_source,
            )],
            is_hidden=not element.is_visible,
            bounding_box=element.bounding_box,
        )

    def add_discovered_elements(
        self, elements: Sequence[ElementDescriptor], test_file: str, label: str = "",
    ) -> None:
        """Record elements discovered on a page during ``test_file``."""
        timestamp = _now_ms()
        created = 0
        for element in elements:
            try:
                url = url_from_discovery_context(element.discovery_context, label)
                key = self._resolve(element) or identity_key(element.selector, element.element_type)
                record = self.store.records.get(key)
                if record is None:
                    self._insert(key, self._new_record(element, url, timestamp))
                    created += 1
                    continue
                record.last_seen_at = timestamp
                last = record.discovered_in[-1] if record.discovered_in else None
                if last is None or last.url != url:
                    record.discovered_in.append(DiscoveryEntry(
                        url=url, timestamp=timestamp, discovery_source=element.discovery_source,
                    ))
            except Exception as e:
                logger.warning("Skipping discovered element %r: %s", getattr(element, "selector", element), e)

        logger.debug("Discovery from %s (%s): %d elements, %d new", test_file, label, len(elements), created)
        self._save()

    def mark_elements_covered(
        self,
        elements: Sequence[ElementDescriptor],
        test_file: str,
        test_name: str,
        interaction_type: Optional[str] = None,
    ) -> None:
        """Record that ``test_name`` in ``test_file`` exercised these elements.

        An element with no record yet gets one: a test interacting with it is
        proof that it exists on the page. With ``create_records_on_coverage``
        off, its key is only indexed under ``test_file`` and it counts once it
        is discovered.
        """
        timestamp = _now_ms()
        keys = self.store.test_coverage.setdefault(test_file, [])
        indexed = set(keys)
        for element in elements:
            try:
                key = self._resolve(element)
                if key is None:
                    key = identity_key(element.selector, element.element_type)
                    if not self.create_records_on_coverage:
                        if key not in indexed:
                            keys.append(key)
                            indexed.add(key)
                        continue
                    url = url_from_discovery_context(element.discovery_context)
                    self._insert(key, self._new_record(element, url, timestamp))
                record = self.store.records[key]
                if key not in indexed:
                    keys.append(key)
                    indexed.add(key)
                if any(c.test_file == test_file and c.test_name == test_name for c in record.covered_by):
                    continue
                record.covered_by.append(CoverageEntry(
                    test_file=test_file,
                    test_name=test_name,
                    timestamp=timestamp,
                    interaction_type=interaction_type,
                ))
            except Exception as e:
                logger.warning("Skipping covered element %r: %s", getattr(element, "selector", element), e)

        self._save()

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def generate_aggregated_coverage(self) -> AggregatedCoverage:
        """Recompute the merged coverage view from the stored records."""
        records = list(self.store.records.values())
        uncovered = [r for r in records if not r.is_covered]
        covered_count = len(records) - len(uncovered)

        type_counts: dict[str, list[int]] = {}
        page_summaries: dict[str, PageCoverageSummary] = {}
        for record in records:
            counts = type_counts.setdefault(record.element_type, [0, 0])
            counts[0] += 1
            counts[1] += int(record.is_covered)

            urls = list(dict.fromkeys(d.url for d in record.discovered_in)) or [UNKNOWN_URL]
            for url in urls:
                summary = page_summaries.setdefault(url, PageCoverageSummary())
                summary.total += 1
                if record.is_covered:
                    summary.covered += 1
                else:
                    summary.uncovered.append(record)

        return AggregatedCoverage(
            total_elements=len(records),
            covered_elements=covered_count,
            coverage_percentage=percentage(covered_count, len(records)),
            uncovered_elements=uncovered,
            coverage_by_type={
                t: TypeCoverage(total=n, covered=c, percentage=percentage(c, n))
                for t, (n, c) in type_counts.items()
            },
            coverage_by_page=page_summaries,
            test_files=list(self.store.test_coverage.keys()),
            last_updated=_now_ms(),
        )

    def get_uncovered_elements_with_recommendations(self) -> list[UncoveredRecommendation]:
        recommendations = [
            recommend_for_record(r) for r in self.store.records.values() if not r.is_covered
        ]
        return sorted(recommendations, key=lambda r: _PRIORITY_ORDER[r.priority])

    def get_test_file_coverage(self, test_file: str) -> FileCoverage:
        records = list(self.store.records.values())
        covered = [r for r in records if any(c.test_file == test_file for c in r.covered_by)]
        uncovered = [r for r in records if not any(c.test_file == test_file for c in r.covered_by)]
        return FileCoverage(
            test_file=test_file,
            total_elements=len(records),
            covered_elements=len(covered),
            uncovered_elements=uncovered,
            coverage_percentage=percentage(len(covered), len(records)),
        )

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def cleanup_duplicates(self) -> int:
        """Merge records that share a canonical identity. Returns how many were folded.

        Records are grouped by their canonical key regardless of the key they
        were stored under, each group is merged into a fresh record, and the
        record map and test-file index are rebuilt from the groups. Running it
        again finds only single-record groups already under canonical keys.
        """
        arena = list(self.store.records.items())
        groups: dict[str, list[int]] = {}
        for record_id, (_, record) in enumerate(arena):
            groups.setdefault(record.key, []).append(record_id)

        merged: dict[str, CoverageRecord] = {}
        remap: dict[str, str] = {}
        for canonical, record_ids in groups.items():
            # Prefer the member already stored under the canonical key as the base.
            record_ids = sorted(record_ids, key=lambda rid: arena[rid][0] != canonical)
            base = arena[record_ids[0]][1].model_copy(deep=True)
            for record_id in record_ids[1:]:
                merge_records(base, arena[record_id][1])
            base.covered_by = _merge_coverage(base.covered_by, [])
            merged[canonical] = base
            for record_id in record_ids:
                remap[arena[record_id][0]] = canonical

        index: dict[str, list[str]] = {}
        for test_file, keys in self.store.test_coverage.items():
            rewritten = index.setdefault(test_file, [])
            for key in keys:
                resolved = remap.get(key, key)
                if resolved not in rewritten:
                    rewritten.append(resolved)

        folded = len(arena) - len(merged)
        changed = (
            folded > 0
            or list(merged) != [k for k, _ in arena]
            or index != self.store.test_coverage
        )
        if not changed:
            logger.debug("Duplicate cleanup: nothing to merge")
            return 0

        self.store.records = merged
        self.store.test_coverage = index
        self._reindex()
        logger.info("Duplicate cleanup: merged %d records into %d", len(arena), len(merged))
        self._save()
        return folded

    def clear_all_data(self) -> None:
        """Forget every record and delete the data file."""
        self.store = CoverageStore()
        self._reindex()
        try:
            if self.path.exists():
                self.path.unlink()
        except OSError as e:
            logger.warning("Failed to clear coverage data at %s: %s", self.path, e)
        logger.info("Coverage data cleared")
