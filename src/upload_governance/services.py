"""
Service wiring.

Builds the governance components from resolved settings so the CLI,
the HTTP API and tests share one construction path.
"""

from dataclasses import dataclass, field

from upload_governance.artifacts.blob_store import BlobStore, LocalBlobStore
from upload_governance.artifacts.metadata_index import MetadataIndex, SqliteMetadataIndex
from upload_governance.artifacts.retention import RetentionCollector
from upload_governance.artifacts.upload import UploadService
from upload_governance.config import GovernanceSettings, load_settings
from upload_governance.core.clock import Clock, SystemClock
from upload_governance.quota.controller import AdmissionController
from upload_governance.quota.store import JsonFileQuotaStore, QuotaStore


@dataclass
class GovernanceServices:
    """The wired-up governance components."""

    settings: GovernanceSettings
    clock: Clock
    quota_store: QuotaStore
    controller: AdmissionController
    blob_store: BlobStore
    metadata_index: MetadataIndex
    collector: RetentionCollector
    uploads: UploadService = field(init=False)

    def __post_init__(self) -> None:
        self.uploads = UploadService(
            self.controller, self.blob_store, self.metadata_index, clock=self.clock
        )

    def close(self) -> None:
        """Release store connections."""
        close = getattr(self.metadata_index, "close", None)
        if close is not None:
            close()


def build_services(
    settings: GovernanceSettings | None = None,
    clock: Clock | None = None,
) -> GovernanceServices:
    """
    Construct every component from settings.

    Args:
        settings: Resolved settings (default: load_settings())
        clock: Time source (default: SystemClock)

    Returns:
        GovernanceServices sharing one clock
    """
    settings = settings or load_settings()
    clock = clock or SystemClock()

    quota_store = JsonFileQuotaStore(settings.resolved_quota_dir)
    controller = AdmissionController(
        quota_store,
        clock=clock,
        hourly_limit=settings.hourly_limit,
        daily_limit=settings.daily_limit,
    )
    blob_store = LocalBlobStore(settings.resolved_blob_dir)
    metadata_index = SqliteMetadataIndex(settings.resolved_metadata_db, page_size=settings.page_size)
    collector = RetentionCollector(
        blob_store, metadata_index, clock=clock, default_ttl=settings.retention_ttl
    )

    return GovernanceServices(
        settings=settings,
        clock=clock,
        quota_store=quota_store,
        controller=controller,
        blob_store=blob_store,
        metadata_index=metadata_index,
        collector=collector,
    )
