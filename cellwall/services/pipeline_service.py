"""Fetch -> parse -> allocate -> publish orchestration and its polling loop."""

from __future__ import annotations

import asyncio
from threading import RLock
from typing import Optional

from cellwall.domain.collection import InvalidRecordError, PatronCollection
from cellwall.domain.models import CellAllocationResult
from cellwall.repository.result_repository import ExportError, ResultRepository
from cellwall.services.allocation_service import CellAllocationService, NumericDriftError
from cellwall.services.fetch_service import FetchError, FetchService
from cellwall.services.parse_service import ParseError, parse_patrons
from cellwall.utils.config import Settings, get_settings
from cellwall.utils.logger import get_logger


logger = get_logger(__name__)

RECOVERABLE_ERRORS = (FetchError, ParseError, InvalidRecordError, ExportError)


class PipelineService:
    """Runs one refresh pass at a time and remembers the latest result."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        fetch_service: Optional[FetchService] = None,
        allocation_service: Optional[CellAllocationService] = None,
        repository: Optional[ResultRepository] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._fetch_service = fetch_service or FetchService(settings=self._settings)
        self._allocation_service = allocation_service or CellAllocationService(
            settings=self._settings
        )
        self._repository = repository or ResultRepository(settings=self._settings)
        self._lock = RLock()
        self._latest_result: CellAllocationResult | None = None

    @property
    def latest_result(self) -> CellAllocationResult | None:
        with self._lock:
            return self._latest_result

    def _read_export(self, force: bool) -> tuple[str, bool] | None:
        """Return the export body and whether it is a staged, uncommitted download."""
        changed_path = self._fetch_service.check_for_update(self._settings.source_url)
        staged = changed_path is not None
        if changed_path is None:
            # Incremental batches must never be applied twice.
            if self._settings.incremental_exports:
                return None
            if not force and self._repository.exists():
                return None
            changed_path = self._fetch_service.current_path
        try:
            return changed_path.read_text(encoding="utf-8"), staged
        except OSError as exc:
            raise FetchError(f"cannot read cached export {changed_path}: {exc}") from exc

    def process_text(self, text: str) -> CellAllocationResult:
        """Allocate and publish one export body."""
        previous = None
        carry_over = None
        first_id = 1
        if self._settings.incremental_exports:
            previous = self._repository.load_payload()
            if previous is not None:
                known_ids = [patron.id for patron in previous.patron_list.patrons]
                known_ids.extend(patron.id for patron in previous.remaining_patrons)
                first_id = max(known_ids, default=0) + 1
                carry_over = self._repository.load_pending_patrons(previous)

        patrons = parse_patrons(text, settings=self._settings, first_id=first_id)
        collection = PatronCollection.build(patrons)
        result = self._allocation_service.allocate(collection, carry_over=carry_over)
        self._repository.publish(result, collection, previous)

        with self._lock:
            self._latest_result = result
        return result

    def run_once(self, force: bool = False) -> CellAllocationResult | None:
        """Run a single refresh; ``None`` means nothing new was published.

        A downloaded change is committed to the fetch cache only after it is
        published, so a failed pass sees the same export as new next time.
        """
        export = self._read_export(force)
        if export is None:
            return None
        text, staged = export
        result = self.process_text(text)
        if staged:
            self._fetch_service.commit_update()
        return result

    async def run_forever(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Refresh every ``poll_interval_seconds`` until ``stop_event`` is set.

        Collaborator failures keep the last published result in place and are
        retried on the next tick. Conservation failures stop the loop.
        """
        stop_event = stop_event or asyncio.Event()
        interval = self._settings.poll_interval_seconds
        logger.info("Refresher started | source_url=%s | interval=%ss", self._settings.source_url, interval)
        while not stop_event.is_set():
            try:
                await asyncio.to_thread(self.run_once)
            except RECOVERABLE_ERRORS as exc:
                logger.warning("Refresh failed, keeping last result | error=%s", exc)
            except NumericDriftError:
                logger.critical("Allocation conservation violated, stopping refresher", exc_info=True)
                raise
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue
        logger.info("Refresher stopped")
