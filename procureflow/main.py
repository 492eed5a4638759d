from fastapi import FastAPI

from procureflow.api.job_orders import router as job_orders_router
from procureflow.api.notifications import router as notifications_router
from procureflow.api.people import router as people_router
from procureflow.api.purchase_orders import router as purchase_orders_router
from procureflow.api.receiving_reports import router as receiving_reports_router
from procureflow.api.service_requests import router as service_requests_router
from procureflow.errors import register_error_handlers
from procureflow.logging import configure_logging
from procureflow.telemetry import setup_otel

app = FastAPI(title="procureflow API")

configure_logging()
setup_otel(app)
register_error_handlers(app)


def _include_api_router(router):
    app.include_router(router)
    app.include_router(router, prefix="/api/v1")


_include_api_router(service_requests_router)
_include_api_router(job_orders_router)
_include_api_router(purchase_orders_router)
_include_api_router(receiving_reports_router)
_include_api_router(notifications_router)
_include_api_router(people_router)


@app.get("/health")
def health_check():
    return {"status": "ok"}
