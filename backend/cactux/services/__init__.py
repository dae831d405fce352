# Services package init
"""
Cactux Topo Backend — Services Layer
======================================

Service Inventory:
    - ImagePipeline:      decode, fill-fit resize, WebP compression policies
    - BlobStore:          abstract blob contract; LocalBlobStore on disk
    - RecordStore:        select/update for the route and boulder tables
    - PersistenceAdapter: store blob + update record
    - AnnotationService:  the save workflow used by both image endpoints
"""
