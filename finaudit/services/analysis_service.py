"""
Analysis service: record registration, the analysis run and lifecycle control.

The run moves a record pending -> analyzing -> completed | failed. The
claim is an atomic conditional update; the final status and results are
written together. Failures are reported to the caller after the record
has been marked failed.
"""

import uuid
from pathlib import Path
from typing import get_args

from finaudit.core.errors import (
    AuthorizationError,
    BlobStoreError,
    FlagNotFoundError,
    PersistenceError,
    PreconditionError,
    RecordNotFoundError,
)
from finaudit.core.models import (
    AnalysisResult,
    FinancialRecord,
    FlagStatus,
    StatusTransition,
    detect_file_type,
)
from finaudit.core.rules import AnomalyEngine, EngineConfig, placeholder_result
from finaudit.extraction import TabularExtractor
from finaudit.observability import metrics
from finaudit.observability.logger import get_logger, log_operation, record_context
from finaudit.store.blob_store import BlobStore, build_storage_path

logger = get_logger(__name__)

SYSTEM_ACTOR = "system"


class AnalysisService:
    """
    Orchestrates analysis of stored financial records.

    Collaborators:
        records: record store (get_record, insert_record, claim_for_analysis,
                 complete_analysis, mark_failed, reset_for_reanalysis,
                 save_analysis_results, delete_record)
        blobs: BlobStore holding the uploaded bytes
        transitions: optional audit trail (insert_status_transition)
    """

    def __init__(
        self,
        records,
        blobs: BlobStore,
        engine: AnomalyEngine | None = None,
        extractor: TabularExtractor | None = None,
        transitions=None,
    ):
        self.records = records
        self.blobs = blobs
        self.engine = engine or AnomalyEngine()
        self.extractor = extractor or TabularExtractor.from_config(self.engine.config)
        self.transitions = transitions

    @classmethod
    def from_config(cls, config: EngineConfig, records, blobs: BlobStore, transitions=None) -> "AnalysisService":
        return cls(
            records=records,
            blobs=blobs,
            engine=AnomalyEngine(config),
            extractor=TabularExtractor.from_config(config),
            transitions=transitions,
        )

    # =======================
    # REGISTRATION
    # =======================

    def upload_record(
        self,
        user_id: str,
        organization_id: str,
        file_name: str,
        data: bytes,
        content_type: str | None = None,
    ) -> FinancialRecord:
        """
        Store file bytes and register a pending record.

        If the record cannot be inserted, the stored bytes are removed again.

        Raises:
            BlobStoreError: If the bytes cannot be stored
            PersistenceError: If the record cannot be inserted
        """
        file_path = build_storage_path(organization_id, file_name)
        self.blobs.upload(file_path, data, content_type)

        record = FinancialRecord(
            record_id=str(uuid.uuid4()),
            file_name=file_name,
            file_path=file_path,
            file_type=detect_file_type(file_name),
            file_size=len(data),
            organization_id=organization_id,
            uploaded_by=user_id,
            status="pending",
        )

        try:
            stored = self.records.insert_record(record)
        except PersistenceError:
            try:
                self.blobs.remove(file_path)
            except BlobStoreError as cleanup_error:
                logger.error(
                    f"Could not remove orphaned upload: {cleanup_error}",
                    extra={"file_path": file_path},
                )
            raise

        logger.info(
            f"Registered record {stored.record_id}",
            extra={
                "record_id": stored.record_id,
                "organization_id": organization_id,
                "file_type": stored.file_type,
                "file_size": stored.file_size,
            },
        )
        return stored

    # =======================
    # ANALYSIS
    # =======================

    def run_analysis(self, record_id: str, actor: str = SYSTEM_ACTOR) -> AnalysisResult:
        """
        Analyse a pending record and persist the result.

        Args:
            record_id: Record to analyse
            actor: Who requested the run (for the audit trail)

        Returns:
            The persisted AnalysisResult

        Raises:
            RecordNotFoundError: Unknown record id
            PreconditionError: Record is not pending (no state change)
            ExtractionError, BlobStoreError, PersistenceError: The run failed;
                the record has been marked failed where possible
        """
        record = self.records.get_record(record_id)
        if record is None:
            raise RecordNotFoundError(record_id)

        if record.status != "pending":
            metrics.increment_counter(metrics.analyses_total, 1, file_type=record.file_type, outcome="rejected")
            raise PreconditionError(
                f"Record is not in a pending state. Current status: {record.status}.",
                record_id=record_id,
                status=record.status,
            )

        with record_context(record_id=record_id, organization_id=record.organization_id):
            return self._claim_and_analyze(record, actor)

    def _claim_and_analyze(self, record: FinancialRecord, actor: str) -> AnalysisResult:
        record_id = record.record_id
        if not self.records.claim_for_analysis(record_id):
            # Another caller claimed it between our read and the update
            current = self.records.get_record(record_id)
            status = current.status if current else "deleted"
            metrics.increment_counter(metrics.analyses_total, 1, file_type=record.file_type, outcome="rejected")
            raise PreconditionError(
                f"Record is not in a pending state. Current status: {status}.",
                record_id=record_id,
                status=status,
            )
        self._record_transition(record_id, "pending", "analyzing", actor)

        try:
            with log_operation(
                "Analyzing record", logger=logger, record_id=record_id, file_type=record.file_type
            ), metrics.track_duration(metrics.analysis_duration_seconds, file_type=record.file_type):
                result = self._analyze_record(record)
                self.records.complete_analysis(record_id, result)
        except Exception as e:
            self._mark_failed(record, actor, e)
            raise

        self._record_transition(record_id, "analyzing", "completed", actor)
        metrics.record_analysis_result(record.file_type, result.anomalies, result.overall_risk_level)
        return result

    def _analyze_record(self, record: FinancialRecord) -> AnalysisResult:
        if record.file_type == "PDF":
            return placeholder_result()
        data = self.blobs.download(record.file_path)
        return self.analyze_bytes(data, record.file_type)

    def analyze_bytes(self, data: bytes, file_type: str) -> AnalysisResult:
        """
        Analyse file bytes without touching any store.

        PDFs get the placeholder result; Excel and CSV go through extraction
        and the rule engine.
        """
        if file_type == "PDF":
            return placeholder_result()
        rows = self.extractor.extract(data, file_type)
        return self.engine.analyze(rows)

    def analyze_file(self, path: str | Path) -> AnalysisResult:
        """Analyse a local file, typing it by extension."""
        path = Path(path)
        return self.analyze_bytes(path.read_bytes(), detect_file_type(path.name))

    def _mark_failed(self, record: FinancialRecord, actor: str, error: Exception) -> None:
        metrics.record_analysis_failure(record.file_type, type(error).__name__)
        try:
            marked = self.records.mark_failed(record.record_id)
        except PersistenceError as e:
            # Status stays "analyzing"; the caller gets the analysis error
            logger.error(
                f"Could not mark record failed: {e}",
                extra={"record_id": record.record_id},
            )
            return

        if marked:
            self._record_transition(record.record_id, "analyzing", "failed", actor, reason=str(error))

    # =======================
    # LIFECYCLE CONTROL
    # =======================

    def reset_record(self, record_id: str, actor: str, reason: str | None = None) -> FinancialRecord:
        """
        Send a completed or failed record back to pending for re-analysis.

        Previous results are discarded; the reset is recorded in the audit trail.

        Raises:
            RecordNotFoundError: Unknown record id
            PreconditionError: Record is pending, processing or analyzing
        """
        previous_status = self.records.reset_for_reanalysis(record_id)
        if previous_status is None:
            record = self.records.get_record(record_id)
            if record is None:
                raise RecordNotFoundError(record_id)
            raise PreconditionError(
                f"Record cannot be reset from status: {record.status}.",
                record_id=record_id,
                status=record.status,
            )

        self._record_transition(record_id, previous_status, "pending", actor, reason=reason)
        logger.info(
            f"Reset record {record_id} for re-analysis",
            extra={"record_id": record_id, "previous_status": previous_status, "actor": actor},
        )
        return self.records.get_record(record_id)

    def update_flag_status(
        self,
        record_id: str,
        flag_id: str,
        status: FlagStatus,
        organization_id: str,
    ) -> AnalysisResult:
        """
        Mark one anomaly or compliance issue as Reviewed or Resolved.

        Raises:
            ValueError: Unknown review status
            RecordNotFoundError: Unknown record id
            AuthorizationError: Record belongs to another organization
            PreconditionError: Record has no analysis results
            FlagNotFoundError: flag_id matches nothing in the results
        """
        if status not in get_args(FlagStatus):
            raise ValueError(f"Invalid flag status: {status}")

        record = self.records.get_record(record_id)
        if record is None:
            raise RecordNotFoundError(record_id)

        if record.organization_id != organization_id:
            raise AuthorizationError("You do not have permission to modify this record.")

        if record.analysis_results is None:
            raise PreconditionError(
                "Analysis results not found for this record.",
                record_id=record_id,
                status=record.status,
            )

        updated = record.analysis_results.with_flag_status(record_id, flag_id, status)
        if updated is None:
            raise FlagNotFoundError(flag_id)

        self.records.save_analysis_results(record_id, updated)
        logger.info(
            f"Flag {flag_id} marked {status}",
            extra={"record_id": record_id, "flag_id": flag_id, "flag_status": status},
        )
        return updated

    def delete_record(self, record_id: str) -> None:
        """
        Delete a record and its stored file.

        A storage failure is logged and does not stop the record deletion.
        """
        record = self.records.get_record(record_id)
        if record is None:
            raise RecordNotFoundError(record_id)

        try:
            self.blobs.remove(record.file_path)
        except BlobStoreError as e:
            logger.error(
                f"Error deleting from storage, continuing to delete record: {e}",
                extra={"record_id": record_id, "file_path": record.file_path},
            )

        if not self.records.delete_record(record_id):
            raise RecordNotFoundError(record_id)
        logger.info(f"Deleted record {record_id}", extra={"record_id": record_id})

    def _record_transition(
        self,
        record_id: str,
        from_status: str,
        to_status: str,
        actor: str,
        reason: str | None = None,
    ) -> None:
        metrics.record_transition(from_status, to_status)
        logger.info(
            f"Record {record_id}: {from_status} -> {to_status}",
            extra={"record_id": record_id, "from_status": from_status, "to_status": to_status, "actor": actor},
        )
        if self.transitions is None:
            return

        transition = StatusTransition(
            record_id=record_id,
            from_status=from_status,
            to_status=to_status,
            actor=actor,
            reason=reason,
        )
        try:
            self.transitions.insert_status_transition(transition)
        except PersistenceError as e:
            # The status change itself is already committed
            logger.error(
                f"Could not write audit trail entry: {e}",
                extra={"record_id": record_id, "from_status": from_status, "to_status": to_status},
            )
