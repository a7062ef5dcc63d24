"""
Reconciliation of analysis results into user-owned file records.

Two triggers drive it:

- on_analyzed: a finished analysis run replaces `auto` and bumps the
  record's `analyzed_gen`. User fields are never touched here.
- on_record_changed: fires on every write to a record (including the
  engine's own) and promotes auto values into empty user fields.

Generation stamps make the reactive pass idempotent: a record whose
`auto_applied_gen` already equals its `analyzed_gen` is left alone, so
the pass never re-triggers itself and ignores unrelated edits.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from autotag.core.models import AnalysisResult, FileRecord, utcnow
from autotag.core.store import Document, DocumentStore, Patch
from autotag.utils.errors import StoreError

# Stamp used when an auto blob arrives without a generation token
DEFAULT_GENERATION = "1"
GENERATION_FIELD = "auto_applied_gen"


@dataclass(frozen=True)
class ReconcileSettings:
    """Promotion thresholds and limits."""

    bpm_confidence_threshold: float = 0.3
    key_confidence_threshold: float = 0.3
    placeholder_type: str = "audio"
    max_tags: int = 20

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None) -> "ReconcileSettings":
        config = config or {}
        return cls(
            bpm_confidence_threshold=float(config.get('bpm_confidence_threshold', 0.3)),
            key_confidence_threshold=float(config.get('key_confidence_threshold', 0.3)),
            placeholder_type=config.get('placeholder_type', "audio"),
            max_tags=int(config.get('max_tags', 20)),
        )


def new_generation() -> str:
    """Opaque token identifying one analysis run."""
    return uuid.uuid4().hex


def has_pending_auto(before: Optional[Document], after: Optional[Document]) -> bool:
    """
    Trigger guard for the reactive pass.

    Proceed only if the record has an auto blob and either the blob
    changed or a generation arrived that has not been applied yet.
    """
    if not after or not after.get("auto"):
        return False

    auto_changed = (before or {}).get("auto") != after.get("auto")
    generation = after.get("analyzed_gen")
    new_generation_pending = (
        generation is not None and generation != after.get(GENERATION_FIELD)
    )
    return auto_changed or new_generation_pending


def merge_tags(current: List[str], incoming: List[str], limit: int) -> List[str]:
    """Ordered set-union, existing tags first, capped at `limit`."""
    return list(dict.fromkeys([*current, *incoming]))[:limit]


def plan_auto_patch(
    record: FileRecord,
    settings: ReconcileSettings,
    fallback_generation: Optional[str] = None,
) -> Patch:
    """
    Compute the merge-patch promoting `record.auto` into user fields.

    Pure function of the record, so it is safe to re-run on a fresh
    snapshot after a transaction conflict. The patch always carries the
    generation stamp; `updated_at` is only added when a user-visible
    field changes.
    """
    auto = record.auto or {}
    patch: Patch = {}

    auto_bpm = auto.get("bpm_norm")
    if auto_bpm is None:
        auto_bpm = auto.get("bpm")
    bpm_confidence = auto.get("bpm_confidence") or 0.0
    if (
        record.bpm is None
        and auto_bpm is not None
        and bpm_confidence >= settings.bpm_confidence_threshold
    ):
        patch["bpm"] = auto_bpm

    auto_key = auto.get("key")
    key_confidence = auto.get("key_confidence") or 0.0
    if (
        record.key is None
        and auto_key
        and key_confidence >= settings.key_confidence_threshold
    ):
        patch["key"] = auto_key

    type_guess = auto.get("type_guess")
    if type_guess:
        if record.type is None or record.type == settings.placeholder_type:
            patch["type"] = type_guess
        elif record.type_auto != type_guess:
            # User picked a real type: keep it, stash the suggestion
            patch["type_auto"] = type_guess

    auto_tags = auto.get("tags") or []
    if auto_tags:
        merged = merge_tags(record.tags, auto_tags, settings.max_tags)
        if merged != record.tags:
            patch["tags"] = merged

    if patch:
        patch["updated_at"] = utcnow()

    patch[GENERATION_FIELD] = (
        record.analyzed_gen or fallback_generation or DEFAULT_GENERATION
    )
    return patch


class ReconciliationEngine:
    """
    Applies analysis results to records through the store's transactions.

    Holds no state between calls besides its collaborators; every
    decision is made from the snapshot the store hands to the
    transaction function.
    """

    def __init__(self, store: DocumentStore, settings: Optional[ReconcileSettings] = None):
        self.store = store
        self.settings = settings or ReconcileSettings()
        self.logger = logging.getLogger("reconcile")

    def on_analyzed(self, record_key: str, result: AnalysisResult) -> str:
        """
        Replace the record's auto blob with a finished analysis.

        Returns:
            The new analysis generation token
        """
        generation = new_generation()
        auto = result.to_dict()

        def write_auto(current: Optional[Document]) -> Patch:
            return {
                "auto": auto,
                "analyzed_at": result.analyzed_at,
                "analyzed_gen": generation,
            }

        self.store.transaction(record_key, write_auto)
        self.logger.info(
            f"Stored analysis for {record_key} (gen {generation[:8]}, "
            f"degraded={result.is_degraded})"
        )
        return generation

    def on_record_changed(
        self,
        record_key: str,
        before: Optional[Document],
        after: Optional[Document],
    ) -> Optional[Patch]:
        """
        Promote auto fields into empty user fields.

        Returns:
            The committed patch, or None when there was nothing to do
        """
        if not has_pending_auto(before, after):
            self.logger.debug(f"No pending auto for {record_key}")
            return None

        fallback_generation = (before or {}).get("analyzed_gen")
        planned: Dict[str, Patch] = {}

        def apply_auto(current: Optional[Document]) -> Optional[Patch]:
            planned.clear()
            if not current or not current.get("auto"):
                return None

            record = FileRecord.from_dict(current)
            if record.analyzed_gen is not None and record.auto_applied_gen == record.analyzed_gen:
                # Already applied by an earlier delivery
                return None

            patch = plan_auto_patch(record, self.settings, fallback_generation)
            if patch.keys() == {GENERATION_FIELD} and patch[GENERATION_FIELD] == record.auto_applied_gen:
                return None

            planned["patch"] = patch
            return patch

        self.store.transaction(record_key, apply_auto)

        patch = planned.get("patch")
        if patch is None:
            self.logger.debug(f"Nothing to apply for {record_key}")
            return None

        changed = sorted(k for k in patch if k not in (GENERATION_FIELD, "updated_at"))
        if changed:
            self.logger.info(f"Applied auto fields to {record_key}: {', '.join(changed)}")
        else:
            self.logger.debug(f"Stamped generation on {record_key}")
        return patch

    def attach(self) -> None:
        """Run the reactive pass on every committed write to the store."""
        self.store.subscribe(self._handle_change)

    def _handle_change(
        self,
        record_key: str,
        before: Optional[Document],
        after: Optional[Document],
    ) -> None:
        try:
            self.on_record_changed(record_key, before, after)
        except StoreError as e:
            # Best-effort enrichment: the record just keeps its auto blob
            self.logger.error(f"Reconciliation failed for {record_key}: {e}")
