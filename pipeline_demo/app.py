import logging
from typing import Optional

from flask import Flask

from pipeline_demo.config import Settings

logger = logging.getLogger(__name__)

GREETING = "Hello from CI/CD Pipeline Demo Application!"


def create_app(settings: Optional[Settings] = None) -> Flask:
  if settings is None:
    settings = Settings()

  app = Flask(__name__)
  app.config["SETTINGS"] = settings

  @app.route("/")
  def home():
    return GREETING

  # Liveness/readiness probe target in the Helm chart and the Dockerfile HEALTHCHECK
  @app.route("/health")
  def health():
    return "OK"

  @app.route("/info")
  def info():
    return f"Version: {settings.app_version} | Environment: {settings.environment}"

  return app


def main(host: str = "0.0.0.0", port: Optional[int] = None) -> None:
  settings = Settings()
  app = create_app(settings)
  logger.info("starting demo service (version %s, environment %s)", settings.app_version, settings.environment)
  app.run(host=host, port=port or settings.port)
