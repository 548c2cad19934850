"""
rePINGO application package.

Layered the same way throughout:

  app/models.py      : the LibraryEntry record and the typed add/edit form.
  app/errors.py      : recoverable error types shown to the user as notices.
  app/repositories/  : pure I/O: the JSON key-value store and the collection
                       kept under one of its keys.
  app/services/      : business logic: display ordering, random selection,
                       import/export, and the LibraryService controller.

``repingo.py`` (terminal) and ``repingo_web.py`` (Flask JSON API) build a
single ``LibraryService`` from configuration and drive it; neither touches
the collection directly.
"""
