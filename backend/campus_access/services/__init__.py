"""Core services, wired together once per application."""
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from .access_log_service import AccessLogRecorder
from .audit_service import AuditService
from .batch_verifier import BatchVerifier
from .pass_service import PassService
from .pass_store import PassStore
from .qr_codec import QRCodec
from .verification_cache import VerificationCache
from .verification_service import VerificationOrchestrator

EXTENSION_KEY = 'campus_access'

@dataclass
class AccessServices:
    """Container for the components built by the application factory."""
    codec: QRCodec
    cache: VerificationCache
    store: PassStore
    audit: AuditService
    orchestrator: VerificationOrchestrator
    recorder: AccessLogRecorder
    batch_verifier: BatchVerifier
    pass_service: PassService

def build_services(config, redis_client=None) -> AccessServices:
    """Construct the verification core from application config."""
    codec = QRCodec(
        config['QR_SECRET_KEY'],
        replay_window=timedelta(hours=config['QR_REPLAY_WINDOW_HOURS'])
    )
    cache = VerificationCache(redis_client)
    store = PassStore()
    audit = AuditService()
    orchestrator = VerificationOrchestrator(
        codec, cache, store, cache_ttl_seconds=config['PASS_CACHE_TTL_SECONDS']
    )
    recorder = AccessLogRecorder(orchestrator, audit)

    return AccessServices(
        codec=codec,
        cache=cache,
        store=store,
        audit=audit,
        orchestrator=orchestrator,
        recorder=recorder,
        batch_verifier=BatchVerifier(
            orchestrator, recorder, max_batch_size=config['MAX_BATCH_SIZE']
        ),
        pass_service=PassService(
            codec, cache, store, audit,
            validity_years=config['PASS_VALIDITY_YEARS'],
            issue_cache_ttl_seconds=config['PASS_ISSUE_CACHE_TTL_SECONDS'],
            temporary_max_minutes=config['TEMPORARY_QR_MAX_MINUTES']
        )
    )

def get_services() -> AccessServices:
    """Services of the current application."""
    return current_app.extensions[EXTENSION_KEY]
