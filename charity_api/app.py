# SPDX-License-Identifier: Apache-2.0

"""
Charity Coordination API - Flask Application Factory

This module builds the Flask application with OpenAPI 3.0 support, wires
the sponsorship services and registers middleware and blueprints.
"""

import os
from datetime import datetime
from typing import Optional, Dict, Any
from flask import jsonify
from flask_openapi3 import OpenAPI, Info, Tag

from . import __version__
from .observability.config import setup_observability, SERVICE_NAME
from .observability.middleware import add_observability_middleware
from .middleware.error_handler import ErrorHandlerMiddleware, register_custom_error_handlers
from .middleware.auth import AuthMiddleware
from .services.hal import create_hal_formatter
from .services.auth import AuthService
from .services.mongodb import MongoDBService, MongoTransactionalStore, get_mongodb_service
from .services.repositories import MongoOrphanRepository, MongoSponsorshipRepository
from .services.transaction import TransactionRunner, TransactionalStore, create_transaction_runner
from .services.sponsorship import SponsorshipWorkflow
from .services.orphan import OrphanService


def load_config() -> Dict[str, Any]:
    """Read application settings from the environment."""
    environment = os.getenv('ENVIRONMENT', 'development')
    return {
        'ENVIRONMENT': environment,
        'DEBUG': environment == 'development',
        'BASE_URL': os.getenv('BASE_URL', 'http://localhost:5000'),
        'OTEL_ENABLED': os.getenv('OTEL_ENABLED', 'true').lower() == 'true',
    }


def create_app(
    config: Optional[Dict[str, Any]] = None,
    mongodb_service: Optional[MongoDBService] = None,
    transactional_store: Optional[TransactionalStore] = None,
    orphan_repository=None,
    sponsorship_repository=None,
    transaction_runner: Optional[TransactionRunner] = None,
    auth_service: Optional[AuthService] = None
) -> OpenAPI:
    """
    Build the application.

    Collaborators default to the MongoDB-backed implementations; tests pass
    their own to run without a database.
    """
    setup_observability()

    info = Info(
        title="Charity Coordination API",
        version=__version__,
        description="Orphan sponsorship coordination with transactional claims and HAL responses"
    )
    tags = [
        Tag(name="Sponsorships", description="Sponsorship lifecycle operations"),
        Tag(name="Orphans", description="Orphan registry"),
        Tag(name="Health", description="System health and status")
    ]

    app = OpenAPI(__name__, info=info, tags=tags)
    app.config.update(load_config())
    if config:
        app.config.update(config)

    add_observability_middleware(app)

    # Initialize services
    mongodb_service = mongodb_service or get_mongodb_service()
    store = transactional_store or MongoTransactionalStore(mongodb_service)
    orphans = orphan_repository or MongoOrphanRepository(mongodb_service)
    sponsorships = sponsorship_repository or MongoSponsorshipRepository(mongodb_service)
    runner = transaction_runner or create_transaction_runner(store)
    auth_service = auth_service or AuthService()

    hal_formatter = create_hal_formatter(app.config['BASE_URL'])
    ErrorHandlerMiddleware(app, app.config['BASE_URL'])
    register_custom_error_handlers(app, hal_formatter)

    # Make services available to routes
    app.mongodb_service = mongodb_service
    app.auth_service = auth_service
    app.auth_middleware = AuthMiddleware(auth_service)
    app.hal_formatter = hal_formatter
    app.sponsorship_workflow = SponsorshipWorkflow(runner, orphans, sponsorships)
    app.orphan_service = OrphanService(orphans)

    from .routes.sponsorship import sponsorship_bp
    from .routes.orphan import orphan_bp

    app.register_api(sponsorship_bp)
    app.register_api(orphan_bp)

    @app.route('/api/healthz')
    def health_check():
        """Health check endpoint reporting database connectivity."""
        database = app.mongodb_service.health_check()
        healthy = database.get('status') == 'healthy'

        health_data = {
            "status": "healthy" if healthy else "unhealthy",
            "service": SERVICE_NAME,
            "version": __version__,
            "environment": app.config['ENVIRONMENT'],
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "dependencies": {"mongodb": database}
        }
        health_response = hal_formatter.builder.build_resource_response(
            health_data,
            {'self': hal_formatter.link_builder.build_self_link('/api/healthz')}
        )
        return jsonify(health_response), 200 if healthy else 503

    return app


if __name__ == '__main__':
    application = create_app()
    application.run(
        host='0.0.0.0',
        port=int(os.getenv('PORT', 5000)),
        debug=application.config['DEBUG']
    )
