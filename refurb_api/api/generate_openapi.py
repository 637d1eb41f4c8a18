import json
import os

from refurb_api.api.main import app

# Get the OpenAPI schema (all REST routes are under /api/v1)
openapi_schema = app.openapi()

# Workflow events are delivered out of band; document their types for integrators
openapi_schema["x-workflow-events"] = [
    "device.received",
    "device.inspected",
    "spares.requested",
    "spares.issued",
    "job.claimed",
    "track.dispatched",
    "track.ready",
    "track.collected",
    "track.completed",
    "track.cancelled",
    "paint.ready",
    "device.sent_to_qc",
    "qc.passed",
    "qc.failed",
    "batch.verified",
    "batch.verification_skipped",
    "devices.dispatched",
    "device.scrapped",
    "tat.approaching",
    "tat.breached",
]

# Write to file
output_dir = "interfaces"
os.makedirs(output_dir, exist_ok=True)
output_path = os.path.join(output_dir, "openapi.json")

with open(output_path, "w") as f:
    json.dump(openapi_schema, f, indent=2)
