"""Crisis Engine HTTP handler - assessment and resource endpoints.

Identity is established upstream (API gateway) and passed in the
X-User-Id header; requests without it are assessed anonymously and get
resources only. Every non-health response carries the crisis resources.
"""
import atexit
import logging
import os
from typing import Optional

from flask import Flask, jsonify, request

from lifeline.services.audit_service import AuditLogger
from lifeline.shared.database import ConnectionManager, DatabaseConfig
from lifeline.shared.utils import configure_pii_salt
from .config import CrisisEngineConfig
from .dispatch import DispatchCoordinator
from .notifications import (
    EventBridgeEmergencyDispatcher,
    KinesisCrisisChannel,
    build_client_config,
)
from .rate_limiter import InMemoryRateLimiter, build_identifier
from .repository import InMemoryInterventionStore, InterventionRepository
from .resources import ResourceCatalog
from .service import AssessmentResponse, AssessmentService, RequestContext

logger = logging.getLogger(__name__)

USER_ID_HEADER = "X-User-Id"
ASSESS_PATH = "/crisis/assess"


def build_default_service(config: Optional[CrisisEngineConfig] = None) -> AssessmentService:
    """Wire the assessment service from configuration."""
    config = config or CrisisEngineConfig.from_env()

    resource_catalog = (
        ResourceCatalog.from_file(config.resources_path)
        if config.resources_path
        else ResourceCatalog()
    )

    if config.persistence_backend == "postgres":
        secret_arn = os.getenv("DB_SECRET_ARN")
        db_config = (
            DatabaseConfig.from_secrets_manager(secret_arn, region=config.region)
            if secret_arn
            else DatabaseConfig.from_env()
        )
        connection_manager = ConnectionManager(db_config)
        connection_manager.initialize()
        store = InterventionRepository(connection_manager)
    else:
        store = InMemoryInterventionStore()

    auditor = AuditLogger()
    client_config = build_client_config(
        connect_timeout=config.aws_connect_timeout_seconds,
        read_timeout=config.aws_read_timeout_seconds,
        max_attempts=config.aws_max_attempts,
    )
    coordinator = DispatchCoordinator(
        store=store,
        channel=KinesisCrisisChannel(
            stream_name=config.kinesis_stream_name,
            enabled=config.publishing_enabled,
            sms_enabled=config.sms_enabled,
            region=config.region,
            client_config=client_config,
        ),
        dispatcher=EventBridgeEmergencyDispatcher(
            event_bus_name=config.event_bus_name,
            region=config.region,
            client_config=client_config,
        ),
        auditor=auditor,
        resource_catalog=resource_catalog,
        timeout_seconds=config.collaborator_timeout_seconds,
        max_workers=config.dispatch_workers,
    )
    rate_limiter = InMemoryRateLimiter(
        window_seconds=config.rate_limit_window_seconds,
        max_requests=config.rate_limit_max_requests,
    )

    logger.info(
        "CRISIS_ENGINE_CONFIGURED",
        extra={
            "persistence_backend": config.persistence_backend,
            "timeout_seconds": config.collaborator_timeout_seconds,
            "rate_limit": config.rate_limit_max_requests,
        }
    )
    return AssessmentService(
        coordinator=coordinator,
        rate_limiter=rate_limiter,
        auditor=auditor,
        resource_catalog=resource_catalog,
    )


def _client_ip() -> Optional[str]:
    """First hop from proxy headers, else the socket peer."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return (
        request.headers.get("X-Real-IP")
        or request.headers.get("CF-Connecting-IP")
        or request.remote_addr
    )


def _request_context(path: str) -> RequestContext:
    user_id = request.headers.get(USER_ID_HEADER) or None
    return RequestContext(
        user_id=user_id,
        client_id=build_identifier(_client_ip(), user_id, path),
    )


def _respond(response: AssessmentResponse):
    http_response = jsonify(response.body)
    http_response.status_code = response.status_code
    retry_after = response.body.get("retryAfter")
    if response.status_code == 429 and retry_after:
        http_response.headers["Retry-After"] = str(retry_after)
    return http_response


def create_app(service: AssessmentService) -> Flask:
    """Build the Flask app around an assessment service."""
    app = Flask(__name__)

    @app.route("/health", methods=["GET"])
    def health():
        """Health check endpoint."""
        return jsonify({
            "status": "healthy",
            "service": "crisis-engine",
        }), 200

    @app.route("/ready", methods=["GET"])
    def ready():
        """Readiness check."""
        if service is None:
            return jsonify({"status": "not_ready"}), 503
        return jsonify({"status": "ready"}), 200

    @app.route("/crisis/resources", methods=["GET"])
    @app.route(ASSESS_PATH, methods=["GET"])
    def get_resources():
        """Crisis hotlines; no identity or quota required."""
        return _respond(service.get_resources())

    @app.route(ASSESS_PATH, methods=["POST"])
    def assess():
        """Run a crisis assessment.

        Request Body:
            {
                "symptoms": ["hopelessness"],
                "suicidalIdeation": true,
                "homicidalIdeation": false,
                "selfHarmRisk": false,
                "substanceUse": false,
                "hasSupport": true,
                "hasPlan": false,
                "hasMeans": false,
                "immediateRisk": false,
                "triggerEvent": "optional",
                "location": "optional",
                "emergencyContacts": [{"name": "...", "phoneNumber": "..."}]
            }
        """
        payload = request.get_json(silent=True)
        context = _request_context(ASSESS_PATH)
        return _respond(service.assess(payload, context))

    @app.route("/crisis/interventions/<intervention_id>", methods=["GET"])
    def get_intervention(intervention_id: str):
        """Fetch one of the caller's intervention records."""
        context = _request_context("/crisis/interventions")
        return _respond(service.get_intervention(intervention_id, context))

    return app


def create_app_from_env() -> Flask:
    configure_pii_salt(
        os.getenv("PII_HASH_SALT", "default_dev_salt_change_in_production_32chars")
    )
    service = build_default_service(CrisisEngineConfig.from_env())
    atexit.register(service.coordinator.close)
    return create_app(service)


app = create_app_from_env()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    port = int(os.getenv("PORT", "8003"))
    app.run(host="0.0.0.0", port=port, debug=False)
