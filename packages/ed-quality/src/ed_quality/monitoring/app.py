from __future__ import annotations

from devkit.observability import configure_otel, configure_probe_access_log_filter
from fastapi import FastAPI, Response

from ed_quality.monitoring.state import quality_exporter, quality_metrics


def create_monitoring_app() -> FastAPI:
    app = FastAPI(title="ED Data Quality Monitoring", version="0.1.0")
    configure_otel("ed-quality-monitoring")
    configure_probe_access_log_filter()

    @app.get("/healthz")
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/readyz")
    async def readyz() -> dict[str, str]:
        return {"status": "ready"}

    @app.get("/metrics")
    async def metrics() -> Response:
        body = quality_exporter.render(quality_metrics)
        return Response(content=body, media_type="text/plain; version=0.0.4")

    return app


app = create_monitoring_app()
