"""
core/entities.py
────────────────
Names of the collections kept by the entity store.
"""

SCHOOLS      = 'schools'
ACCOUNTS     = 'accounts'
SETTINGS     = 'settings'
STUDENTS     = 'students'
FEES         = 'fees'
INSTALLMENTS = 'installments'
COUNTERS     = 'counters'
MESSAGES     = 'messages'
