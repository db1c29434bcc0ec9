# Tableros: kanban boards for hearings, meetings, deadlines and activities
#
# Components:
#   schema.py     - Data model (BoardItem, Estado, Prioridad, BoardKind)
#   errors.py     - Error taxonomy shared by every layer
#   config.py     - YAML + environment configuration
#   store.py      - Remote record store (HTTP, table-scoped CRUD)
#   files.py      - Object storage client for attachments
#   filters.py    - Client-side search / responsable / date filtering
#   board.py      - Status partitioning, pagination and board view state
#   controller.py - Drag transitions and CRUD with notifications
#   forms.py      - Form validation and payload cleanup
#   metrics.py    - Per-process aggregate metrics
