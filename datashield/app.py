import logging
from contextlib import asynccontextmanager
from logging.config import dictConfig
from pathlib import Path

import yaml
from fastapi import FastAPI

from datashield.core.config import get_settings
from datashield.core.features.rls.router import router as rls_router
from datashield.core.version import __version__

logger = logging.getLogger(__name__)


def configure_logging(config_path: Path | None) -> bool:
	"""Load a YAML dictConfig file if one exists at config_path."""
	if config_path is None or not config_path.is_file():
		return False

	with open(config_path, "r") as stream:
		config = yaml.safe_load(stream)

	dictConfig(config)
	return True


@asynccontextmanager
async def lifespan(app: FastAPI):
	"""Application lifespan handler for startup/shutdown events."""
	logger.info("Starting Datashield API server...")
	yield
	logger.info("Shutting down Datashield API server...")


def create_app() -> FastAPI:
	config = get_settings()
	configure_logging(config.log_config)

	app = FastAPI(
		title="Datashield REST API",
		version=__version__,
		lifespan=lifespan,
	)
	app.include_router(rls_router, prefix=config.api_prefix)
	return app


app = create_app()
