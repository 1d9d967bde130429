"""Career synchronization service.

Replicates a validated Career into the relational store: the career row,
its plan, the subjects, the career-subject associations and the
prerequisite edges. The store's writes are not fully reliable primitives:

- subject upserts skip existing codes and leave them out of the result,
  so missing ids are recovered with a lookup by code;
- subject ids are assigned by the store, so associations and prerequisites
  are only built once ids are known;
- multi-row writes can fail as a whole, so association batches fall back
  to row-by-row writes.

Errors from individual writes are accumulated and reported; rows written
by earlier stages are never rolled back.
"""

import asyncio
import logging
import traceback
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Set

from career_loader.config import get_settings
from career_loader.exceptions import (
    InvalidCareerError,
    StoreConnectionError,
    UnsafeCareerError,
)
from career_loader.schemas.career import Career, Subject, SyncReport, SyncStats
from career_loader.utils.store import UNIQUE_VIOLATION, RowStore, StoreError

logger = logging.getLogger(__name__)


@dataclass
class SyncContext:
    """State owned by a single synchronization run.

    Attributes:
        career_id: Numeric career id used as foreign key.
        subjects: Valid subjects, unique by code, in career order.
        subject_ids: Code to storage id map, filled as ids are confirmed.
        unresolved: Codes left without a storage id after reconciliation;
            they are kept out of associations and prerequisites.
        errors: Accumulated error messages.
        stats: Counters reported at the end of the run.
    """

    career_id: int
    subjects: List[Subject]
    stats: SyncStats
    subject_ids: Dict[str, int] = field(default_factory=dict)
    unresolved: Set[str] = field(default_factory=set)
    errors: List[str] = field(default_factory=list)

    def record_error(self, table: str, error: Any) -> None:
        self.errors.append(f"{table}: {error}")


class CareerSyncService:
    """Service persisting a validated Career through a RowStore.

    Usage:
        store = SqlAlchemyRowStore(session)
        report = await CareerSyncService(store).sync(career)
        if not report.success:
            print(report.stats.error_details)

    Attributes:
        store: Row store receiving the writes.
        batch_size: Rows per career-subject batch.
        batch_delay: Pause between career-subject batches, in seconds.
    """

    CAREERS = "careers"
    CAREER_PLANS = "career_plans"
    SUBJECTS = "subjects"
    CAREER_SUBJECTS = "career_subjects"
    PREREQUISITES = "prerequisites"

    def __init__(
        self,
        store: RowStore,
        batch_size: Optional[int] = None,
        batch_delay: Optional[float] = None,
    ) -> None:
        """Initialize service with a row store.

        Args:
            store: Row store receiving the writes.
            batch_size: Rows per association batch (defaults to settings).
            batch_delay: Seconds between association batches (defaults to
                settings).
        """
        settings = get_settings()
        self.store = store
        self.batch_size = max(1, batch_size or settings.SYNC_BATCH_SIZE)
        self.batch_delay = (
            settings.SYNC_BATCH_DELAY if batch_delay is None else batch_delay
        )

    async def sync(self, career: Career) -> SyncReport:
        """Persist a career and report what was written.

        Never raises: refusals, connectivity failures and unexpected faults
        all come back as a failed SyncReport.

        Args:
            career: Career marked as safe by the caller.

        Returns:
            SyncReport with success flag, message and stats.
        """
        stats = SyncStats(total_subjects=len(career.subjects))

        if not career.safe:
            error = UnsafeCareerError(career.id, career.name)
            logger.warning(
                "Refused to save career not marked as safe",
                extra={"career_id": career.id, "career_name": career.name},
            )
            return SyncReport(success=False, message=str(error), stats=stats)

        logger.info(
            "Saving career",
            extra={"career_id": career.id, "career_name": career.name},
        )

        try:
            return await self._run(career, stats)
        except Exception as e:
            logger.error(
                "Fatal error while saving career",
                extra={"career_id": career.id, "error": str(e)},
                exc_info=True,
            )
            stats.error = traceback.format_exc()
            return SyncReport(
                success=False,
                message=str(e) or e.__class__.__name__,
                stats=stats,
            )

    async def _run(self, career: Career, stats: SyncStats) -> SyncReport:
        ctx = SyncContext(
            career_id=self._parse_career_id(career),
            subjects=self._valid_subjects(career),
            stats=stats,
        )
        stats.valid_subjects = len(ctx.subjects)

        await self._check_connection()

        await self._save_career(ctx, career)
        await self._save_plan(ctx, career)
        written = await self._save_subjects(ctx)
        # Prerequisites only go in when career, plan and subjects were clean
        write_errors = len(ctx.errors)

        await self._reconcile_subject_ids(ctx, written)
        await self._save_career_subjects(ctx)

        if write_errors == 0:
            await self._save_prerequisites(ctx)
        else:
            logger.warning(
                "Skipping prerequisites after write errors",
                extra={"career_id": ctx.career_id, "errors": write_errors},
            )

        return self._report(ctx)

    @staticmethod
    def _parse_career_id(career: Career) -> int:
        career_id = career.id.strip()
        if not career_id.isdigit():
            raise InvalidCareerError(f"Career id {career.id!r} is not numeric")
        return int(career_id)

    @staticmethod
    def _valid_subjects(career: Career) -> List[Subject]:
        subjects: Dict[str, Subject] = {}
        for subject in career.subjects:
            if subject.id and subject.code and subject.name:
                subjects.setdefault(subject.code, subject)
        return list(subjects.values())

    async def _check_connection(self) -> None:
        try:
            result = await self.store.select(self.CAREERS, ["careerid"], limit=1)
        except Exception as e:
            raise StoreConnectionError(f"Could not connect to the store: {e}") from e
        if not result.ok:
            raise StoreConnectionError(
                f"Could not connect to the store: {result.error}"
            )
        logger.debug("Store connection verified")

    async def _save_career(self, ctx: SyncContext, career: Career) -> None:
        faculty_id = career.faculty.id.strip()
        row = {
            "careerid": ctx.career_id,
            "name": career.name,
            "facultyid": int(faculty_id) if faculty_id.isdigit() else None,
        }
        result = await self.store.upsert(self.CAREERS, [row])
        if not result.ok:
            logger.error(
                "Failed to save career",
                extra={"career_id": ctx.career_id, "error": str(result.error)},
            )
            ctx.record_error(self.CAREERS, result.error)

    async def _save_plan(self, ctx: SyncContext, career: Career) -> None:
        if not (career.plan.id and career.plan.year):
            logger.info("Career has no plan", extra={"career_id": ctx.career_id})
            return

        row = {
            "careerid": ctx.career_id,
            "plan_id": career.plan.id,
            "plan_year": career.plan.year,
        }
        result = await self.store.upsert(self.CAREER_PLANS, [row])
        if not result.ok:
            logger.error(
                "Failed to save career plan",
                extra={"career_id": ctx.career_id, "error": str(result.error)},
            )
            ctx.record_error(self.CAREER_PLANS, result.error)

    async def _save_subjects(self, ctx: SyncContext) -> List[Dict[str, Any]]:
        """Upsert subjects by code, returning only the rows the store wrote."""
        if not ctx.subjects:
            return []

        rows = [{"code": s.code, "name": s.name} for s in ctx.subjects]
        result = await self.store.upsert(
            self.SUBJECTS, rows, on_conflict="code", ignore_duplicates=True
        )
        if not result.ok:
            self._log_subject_error(ctx, result.error)
            ctx.record_error(self.SUBJECTS, result.error)
            return []

        logger.info(
            "Saved subjects",
            extra={
                "career_id": ctx.career_id,
                "requested": len(rows),
                "written": len(result.rows),
            },
        )
        return result.rows

    @staticmethod
    def _log_subject_error(ctx: SyncContext, error: StoreError) -> None:
        if error.code == UNIQUE_VIOLATION:
            logger.warning(
                "Subject codes collided, recovering ids by lookup",
                extra={"career_id": ctx.career_id, "error": str(error)},
            )
        else:
            logger.error(
                "Failed to save subjects",
                extra={"career_id": ctx.career_id, "error": str(error)},
            )

    async def _lookup_subject_ids(
        self, ctx: SyncContext, codes: Sequence[str]
    ) -> Dict[str, int]:
        if not codes:
            return {}
        result = await self.store.select(
            self.SUBJECTS, ["subjectid", "code"], {"code": list(codes)}
        )
        if not result.ok:
            logger.error(
                "Failed to look up subjects by code",
                extra={"career_id": ctx.career_id, "error": str(result.error)},
            )
            ctx.record_error(self.SUBJECTS, result.error)
            return {}
        return {row["code"]: row["subjectid"] for row in result.rows}

    async def _reconcile_subject_ids(
        self, ctx: SyncContext, written: List[Dict[str, Any]]
    ) -> None:
        """Build the code to id map from written rows plus a lookup for the rest."""
        valid_codes = {s.code for s in ctx.subjects}
        for row in written:
            if row.get("code") in valid_codes and row.get("subjectid") is not None:
                ctx.subject_ids[row["code"]] = row["subjectid"]

        missing = [s.code for s in ctx.subjects if s.code not in ctx.subject_ids]
        if missing:
            logger.info(
                "Subjects missing from upsert result, looking them up",
                extra={"career_id": ctx.career_id, "missing": len(missing)},
            )
            found = await self._lookup_subject_ids(ctx, missing)
            for code in missing:
                if code in found:
                    ctx.subject_ids[code] = found[code]

        for code in missing:
            if code not in ctx.subject_ids:
                ctx.unresolved.add(code)
                logger.warning(
                    "No storage id for subject",
                    extra={"career_id": ctx.career_id, "code": code},
                )
                ctx.record_error(self.SUBJECTS, f"no storage id for subject {code}")

        ctx.stats.subjects_inserted = len(ctx.subject_ids)

    async def _save_career_subjects(self, ctx: SyncContext) -> None:
        rows = [
            {
                "careerid": ctx.career_id,
                "subjectid": ctx.subject_ids[s.code],
                "suggested_year": s.year or 1,
                "suggested_quarter": s.semester or 1,
                "is_optional": s.is_optional,
            }
            for s in ctx.subjects
            if s.code in ctx.subject_ids
        ]
        if not rows:
            logger.warning(
                "No career-subject rows to save",
                extra={"career_id": ctx.career_id},
            )
            return

        batches = [
            rows[start : start + self.batch_size]
            for start in range(0, len(rows), self.batch_size)
        ]
        for index, batch in enumerate(batches, start=1):
            result = await self.store.upsert(self.CAREER_SUBJECTS, batch)
            if result.ok:
                ctx.stats.relations_inserted += len(batch)
            else:
                logger.warning(
                    "Career-subject batch failed, retrying row by row",
                    extra={
                        "career_id": ctx.career_id,
                        "batch": index,
                        "batches": len(batches),
                        "error": str(result.error),
                    },
                )
                await self._save_rows_one_by_one(ctx, batch)

            if index < len(batches) and self.batch_delay > 0:
                await asyncio.sleep(self.batch_delay)

        logger.info(
            "Saved career-subject rows",
            extra={
                "career_id": ctx.career_id,
                "inserted": ctx.stats.relations_inserted,
                "failed": ctx.stats.relations_failed,
                "total": len(rows),
            },
        )

    async def _save_rows_one_by_one(
        self, ctx: SyncContext, batch: List[Dict[str, Any]]
    ) -> None:
        failed = 0
        for row in batch:
            result = await self.store.upsert(self.CAREER_SUBJECTS, [row])
            if result.ok:
                ctx.stats.relations_inserted += 1
            else:
                failed += 1
                ctx.record_error(
                    self.CAREER_SUBJECTS,
                    f"subject {row['subjectid']}: {result.error}",
                )
        ctx.stats.relations_failed += failed
        if failed == 0:
            ctx.stats.batch_fallbacks += 1

    async def _save_prerequisites(self, ctx: SyncContext) -> None:
        codes: Dict[str, None] = {}
        pairs = []
        for subject in ctx.subjects:
            codes[subject.code] = None
            for previous in subject.correlatives.previous:
                if previous.code:
                    codes[previous.code] = None
                    pairs.append((subject.code, previous.code))

        if not pairs:
            logger.info(
                "Career has no prerequisites",
                extra={"career_id": ctx.career_id},
            )
            return

        # Codes that failed reconciliation stay out even if a later lookup finds them
        lookup_codes = [code for code in codes if code not in ctx.unresolved]
        subject_ids = dict(ctx.subject_ids)
        subject_ids.update(await self._lookup_subject_ids(ctx, lookup_codes))

        rows = []
        for code, previous_code in pairs:
            subject_id = None if code in ctx.unresolved else subject_ids.get(code)
            previous_id = (
                None if previous_code in ctx.unresolved else subject_ids.get(previous_code)
            )
            if subject_id is None or previous_id is None:
                ctx.stats.prerequisites_missing += 1
                logger.warning(
                    "Prerequisite references unknown subject",
                    extra={
                        "career_id": ctx.career_id,
                        "code": code,
                        "prerequisite_code": previous_code,
                    },
                )
                continue
            rows.append(
                {
                    "subjectid": subject_id,
                    "prerequisite_subjectid": previous_id,
                    "careerid": ctx.career_id,
                }
            )

        if not rows:
            return

        result = await self.store.upsert(self.PREREQUISITES, rows)
        if not result.ok:
            logger.error(
                "Failed to save prerequisites",
                extra={"career_id": ctx.career_id, "error": str(result.error)},
            )
            ctx.record_error(self.PREREQUISITES, result.error)
            return

        ctx.stats.prerequisites_inserted = len(rows)
        logger.info(
            "Saved prerequisites",
            extra={
                "career_id": ctx.career_id,
                "inserted": len(rows),
                "missing": ctx.stats.prerequisites_missing,
            },
        )

    @staticmethod
    def _report(ctx: SyncContext) -> SyncReport:
        stats = ctx.stats
        stats.errors = len(ctx.errors)
        stats.error_details = list(ctx.errors)

        if ctx.errors:
            message = (
                f"Career {ctx.career_id} saved with {len(ctx.errors)} error(s)"
            )
            logger.warning(
                "Career saved with errors",
                extra={"career_id": ctx.career_id, "errors": len(ctx.errors)},
            )
        else:
            message = (
                f"Career {ctx.career_id} saved: {stats.subjects_inserted} subjects, "
                f"{stats.relations_inserted} career-subject rows, "
                f"{stats.prerequisites_inserted} prerequisites"
            )
            logger.info(message, extra={"career_id": ctx.career_id})

        return SyncReport(success=not ctx.errors, message=message, stats=stats)
