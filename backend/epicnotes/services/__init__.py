# Services package init
"""
Epic Notes Backend - Services Layer
=====================================

What:  Business logic between routes (HTTP) and the database.

Service Inventory:
    - multipart:        Multipart Decoder (streamed body → DecodedForm)
    - validation:       Schema Validator (DecodedForm → NoteEditorForm)
    - image_diff:       Image Diff Resolver (NoteEditorForm → Submission)
    - note_service:     Note reads, deletion and the Persistence Applier
    - user_service:     User search and profiles
    - form_protection:  CSRF double-submit and honeypot checks

Services never reach for a global database handle; every call takes the
request's AsyncSession.
"""
