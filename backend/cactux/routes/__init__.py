# Routes package init
"""
Cactux Topo Backend — API Routes Package
==========================================

Route Inventory:
    - images.py:   POST /optimize-line      (save photo + route line)
                   POST /upload-image       (size-budgeted base/line upload)
    - records.py:  GET  /records/{table}    (list routes or boulders)
    - health.py:   GET  /health             (service health check)

Routes are THIN: they parse the request, call a service and shape the
response. Business logic lives in services.
"""
