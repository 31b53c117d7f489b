"""
contact/models.py -- Domain dataclass for contact-form submissions.

Layer rule: no imports from api/, auth/, or bootstrap/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ContactSubmission:
    name: str
    email: str
    message: str
    id: str | None = None
    created_at: str | None = None
