"""Main FastAPI application entry point."""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from complaint_tracker.config import Config
from complaint_tracker.database import init_db
from complaint_tracker.api.routes import router
# Import models to register them with SQLAlchemy Base
from complaint_tracker.models.domain import Report, StaffMember, WorkOrder, SequenceCounter
from complaint_tracker.models.audit import AuditEntry

logging.basicConfig(
    level=Config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)

# Create database tables
init_db()

# Create FastAPI app
app = FastAPI(
    title="Complaint Tracker - Work Order Lifecycle",
    description="Assigns citizen reports to field staff, tracks resolution status, and keeps an audit trail.",
    version="0.1.0"
)

# Enable CORS for the dashboard during local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router, prefix="/api", tags=["Work orders"])


# Health check
@app.get("/health")
def health_check():
    return {"status": "healthy", "service": "Complaint Tracker"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
