from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from feeledger.core.config import settings
from feeledger.core.logging import configure_logging
from feeledger.api.v1.invoices.router import router as invoices_router
from feeledger.api.v1.payments.router import router as payments_router
from feeledger.api.v1.reports.router import router as reports_router
from feeledger.api.v1.students.router import router as students_router


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Fee Ledger Backend")

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(students_router)
    app.include_router(payments_router)
    app.include_router(reports_router)
    app.include_router(invoices_router)

    return app


app = create_app()
