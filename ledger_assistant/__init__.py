"""
Ledger Assistant - Source Package

A conversational ledger assistant: people describe spending and income in
chat, a language model turns that into a structured intent, and this
package records, reconciles and answers against their personal ledger.

DESIGN PRINCIPLES:
1. The language model translates, the engine decides
2. Validate before touching the store
3. Never silently drop a record
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Ledger Assistant Team"
