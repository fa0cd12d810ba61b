# Routes package init
"""
NoteShare Backend — API Routes Package
========================================

Route Inventory:
    - notes.py:       POST/GET /api/notes, GET/PATCH/DELETE /api/notes/{id},
                      GET /api/notes/{id}/download, GET /api/files/{path}
    - engagement.py:  PUT /api/notes/{id}/like, /comments, PUT .../download
    - archive.py:     GET /api/archives, POST/DELETE /api/archives/{id}
    - health.py:      GET /health

Routes stay thin: extract inputs, resolve the caller, call a service,
wrap the result in its envelope.
"""
