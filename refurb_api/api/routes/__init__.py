"""
API route modules for the refurbishment workflow.

This package contains subrouters for:
- Intake: purchase orders, inward batches, receiving and shipment verification
- Devices: lookup, stock movements, outward dispatch and scrap
- Inspection, coordination (claims and repair tracks), spares and QC
- Racks, TAT scans and report exports

Routers are included from refurb_api.api.main (under the /api/v1 prefix).
"""
