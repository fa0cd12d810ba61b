# Services package init
"""
NoteShare Backend — Services Layer
====================================

What:  Business logic between routes (HTTP) and the two stores (database,
       blob store).

Service Inventory:
    - BlobStore (abstract), LocalBlobStore, SupabaseBlobStore: document bytes
    - FileService:       upload and external locator validation
    - NoteService:       create / read / list / update / delete of notes
    - EngagementService: likes, comments, download counter
    - ArchiveService:    per-user archive set and the archived flag
    - DownloadService:   streaming a note's document to the client

Services never see Request/Response objects; they raise NoteShareError
subclasses and the handlers in main.py turn those into HTTP responses.
"""
