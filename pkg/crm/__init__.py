# CRM board: customer cards, workflow columns, reminders and persistence
#
# Components:
#   schema.py    - Data model (BoardData, Customer, Column, Tag, CallLog)
#   board.py     - Pure board transitions and the BoardState container
#   reminders.py - Reminder sweep, notifiers, background sweeper
#   importer.py  - CSV import and template export
#   store.py     - JSON file persistence layer
#   client.py    - HTTP document client and background snapshot saver
#   whatsapp.py  - WhatsApp click-to-chat links
#   config.py    - YAML + environment configuration
#   session.py   - Board session wiring state, saver and sweeper together
