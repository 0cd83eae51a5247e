# Routes package init
"""
Epic Notes Backend - API Routes Package
=========================================

What:  HTTP route handlers that accept requests and return responses.

Route Inventory:
    - users.py:     GET  /users?search=           (user search)
                    GET  /users/{username}         (profile)
    - notes.py:     GET  /users/{username}/notes   (note list)
                    GET  /users/{username}/notes/{id}        (detail)
                    POST /users/{username}/notes/{id}        (intent=delete)
                    GET  /users/{username}/notes/{id}/edit   (editor defaults)
                    POST /users/{username}/notes/{id}/edit   (editing pipeline)
    - resources.py: GET  /resources/images/{id}    (image blobs)
    - auth.py:      GET/POST /signup               (CSRF + honeypot)
    - health.py:    GET  /health                   (service health check)

Routes stay thin: extract input, call a service, shape the response.
"""
