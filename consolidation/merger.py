"""
Supplier consolidation (merge).

Merging repoints every material that names the source supplier to the target
supplier's name, then deletes the source supplier record if it has one.
Invoices are never rewritten: they keep the supplier text they arrived with,
so revenue recorded under the old name stays with the old name.

A merge works inside the target supplier's company: only materials of that
company are repointed, and a persisted source must belong to the same company.
A target without a company (single-tenant installs) covers every material.

The stores offer no multi-record transactions, so a merge is driven by a
merge intent persisted in the database:

  1. The intent records source, target and the ids of the materials to move.
  2. Materials are updated one at a time; after each one the intent is saved.
  3. A failed update is logged and collected, and the loop carries on.
     Updates already applied are never rolled back.
  4. With failures the intent is left 'partial' and PartialFailureError is
     raised; the source supplier is kept. Without failures the source is
     deleted and the intent marked 'completed'.

Running the same merge again (or calling resume()) continues the open intent
instead of starting over.
"""
import logging
from typing import Optional

from models.result import MergeIntent, MergeResult
from models.supplier import PersistedSupplier, SupplierIdentity
from .database import Database
from .errors import ConflictError, NotFoundError, PartialFailureError

logger = logging.getLogger(__name__)


class SupplierMerger:
    """Merges one supplier identity into a persisted supplier."""

    def __init__(self, db: Database):
        self.db = db

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def merge(
        self,
        source: SupplierIdentity,
        target_supplier_id: str,
        actor: str = "system",
    ) -> MergeResult:
        """
        Merge *source* into the persisted supplier *target_supplier_id*.

        Raises ConflictError / NotFoundError before touching anything, and
        PartialFailureError if some materials could not be repointed.
        """
        target = self._resolve_target(source, target_supplier_id)

        if isinstance(source, PersistedSupplier):
            stored = self.db.get_supplier(source.id)
            if stored is None:
                raise NotFoundError(f"Source supplier not found: {source.id}")
            if stored.get("company_id") != target.get("company_id"):
                raise ConflictError(
                    f"'{source.name}' and '{target['name']}' belong to different companies"
                )

        open_intent = self.db.find_open_merge_intent(source.name, source.id, target["id"])
        if open_intent:
            logger.info(
                "Continuing open merge %s: '%s' -> '%s'",
                open_intent["id"], source.name, target["name"],
            )
            return self._run(MergeIntent.model_validate(open_intent), target, actor)

        material_ids = [
            m["id"] for m in self.db.list_materials(target.get("company_id"), supplier=source.name)
        ]
        intent = MergeIntent.model_validate(self.db.create_merge_intent(
            source_name=source.name,
            source_supplier_id=source.id,
            target_supplier_id=target["id"],
            target_name=target["name"],
            material_ids=material_ids,
        ))
        self.db.log_audit(
            "merge", intent.id, "merge_started", actor=actor,
            detail={
                "source": source.name,
                "source_inferred": source.is_inferred,
                "target": target["name"],
                "materials": len(material_ids),
            },
        )
        logger.info(
            "Merging '%s' into '%s': %d materials to repoint",
            source.name, target["name"], len(material_ids),
        )
        return self._run(intent, target, actor)

    def resume(self, intent_id: str, actor: str = "system") -> MergeResult:
        """
        Continue an interrupted or partially failed merge.

        Materials that picked up the source name since the intent was written
        are included. Resuming a completed merge changes nothing.
        """
        row = self.db.get_merge_intent(intent_id)
        if row is None:
            raise NotFoundError(f"Merge not found: {intent_id}")
        intent = MergeIntent.model_validate(row)

        if not intent.is_open:
            return self._result(intent)

        target = self.db.get_supplier(intent.target_supplier_id)
        if target is None:
            raise NotFoundError(f"Target supplier not found: {intent.target_supplier_id}")

        logger.info("Resuming merge %s: '%s' -> '%s'", intent.id, intent.source_name, intent.target_name)
        return self._run(intent, target, actor)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _resolve_target(self, source: SupplierIdentity, target_supplier_id: Optional[str]) -> dict:
        # Inferred suppliers have no id, so they can never be passed here as a target
        if not isinstance(target_supplier_id, str) or not target_supplier_id:
            raise ConflictError(
                "Select a supplier profile to merge into; suppliers without a profile cannot be a target"
            )
        if source.id is not None and source.id == target_supplier_id:
            raise ConflictError("A supplier cannot be merged with itself")

        target = self.db.get_supplier(target_supplier_id)
        if target is None:
            raise NotFoundError(f"Target supplier not found: {target_supplier_id}")
        # Materials reference suppliers by name only
        if target["name"] == source.name:
            raise ConflictError(f"'{source.name}' already is the target supplier's name")
        return target

    def _run(self, intent: MergeIntent, target: dict, actor: str) -> MergeResult:
        source_name = intent.source_name
        target_name = target["name"]

        # Pick up materials that started naming the source since the intent was written
        pending = list(intent.remaining_material_ids)
        for m in self.db.list_materials(target.get("company_id"), supplier=source_name):
            if m["id"] not in pending:
                pending.append(m["id"])

        migrated = list(intent.migrated_material_ids)
        skipped = list(intent.skipped_material_ids)
        failed: dict[str, str] = {}

        for material_id in list(pending):
            try:
                outcome = self._repoint(material_id, source_name, target_name)
            except Exception as exc:
                logger.error("Failed to repoint material %s to '%s': %s", material_id, target_name, exc)
                failed[material_id] = str(exc)
                continue

            pending.remove(material_id)
            (migrated if outcome else skipped).append(material_id)
            self.db.update_merge_intent(
                intent.id,
                remaining_material_ids=pending,
                migrated_material_ids=migrated,
                skipped_material_ids=skipped,
            )

        if failed:
            self.db.update_merge_intent(
                intent.id,
                status="partial",
                remaining_material_ids=pending,
                failed_material_ids=list(failed),
            )
            self.db.log_audit(
                "merge", intent.id, "merge_partial", actor=actor,
                detail={"migrated": len(migrated), "failed": failed},
            )
            logger.warning(
                "Merge %s incomplete: %d migrated, %d failed — '%s' kept",
                intent.id, len(migrated), len(failed), source_name,
            )
            raise PartialFailureError(intent.id, migrated, failed)

        source_deleted = False
        if intent.source_supplier_id:
            source_deleted = self.db.delete_supplier(intent.source_supplier_id)

        self.db.update_merge_intent(
            intent.id,
            status="completed",
            remaining_material_ids=[],
            failed_material_ids=[],
        )
        self.db.log_audit(
            "merge", intent.id, "merge_completed", actor=actor,
            detail={"migrated": len(migrated), "skipped": len(skipped), "source_deleted": source_deleted},
        )
        logger.info(
            "Merged '%s' into '%s': %d materials migrated%s",
            source_name, target_name, len(migrated),
            ", source supplier deleted" if source_deleted else "",
        )
        return self._result(
            MergeIntent.model_validate(self.db.get_merge_intent(intent.id)),
            source_deleted=source_deleted,
        )

    def _repoint(self, material_id: str, source_name: str, target_name: str) -> bool:
        """
        Point one material at the target name.

        Returns False (skipped) when the material is gone or was moved to
        another supplier in the meantime.
        """
        material = self.db.get_material(material_id)
        if material is None:
            logger.warning("Material %s disappeared during merge — skipped", material_id)
            return False
        if material["supplier"] == target_name:
            return True
        if material["supplier"] != source_name:
            logger.warning(
                "Material %s now names '%s', not '%s' — skipped",
                material_id, material["supplier"], source_name,
            )
            return False
        return self.db.update_material(material_id, {"supplier": target_name})

    @staticmethod
    def _result(intent: MergeIntent, source_deleted: Optional[bool] = None) -> MergeResult:
        return MergeResult(
            intent_id=intent.id,
            source_name=intent.source_name,
            target_supplier_id=intent.target_supplier_id,
            target_name=intent.target_name,
            materials_migrated=len(intent.migrated_material_ids),
            materials_skipped=len(intent.skipped_material_ids),
            source_deleted=(
                source_deleted if source_deleted is not None
                else intent.source_supplier_id is not None
            ),
        )


def merge_suppliers(
    db: Database,
    source: SupplierIdentity,
    target_supplier_id: str,
    actor: str = "system",
) -> MergeResult:
    """Merge *source* into the persisted supplier with id *target_supplier_id*."""
    return SupplierMerger(db).merge(source, target_supplier_id, actor=actor)
