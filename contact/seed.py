"""
contact/seed.py -- Sample submissions written by the one-time bootstrap seeder.

seed_sample_submissions() is the seed callable handed to
bootstrap.seeder.IdempotentSeeder. It runs on the seeding transaction's
connection; it must not commit or open its own transaction.
"""

from __future__ import annotations

import logging

from sqlalchemy.engine import Connection

from contact.models import ContactSubmission
from contact.store import insert_many

logger = logging.getLogger("storm.bootstrap")

SAMPLE_SUBMISSIONS: tuple[ContactSubmission, ...] = (
    ContactSubmission(
        name="Jane Smith",
        email="jane.smith@example.com",
        message="I'd like to know if there are any discounts for group tickets to the Flower Festival.",
    ),
    ContactSubmission(
        name="Michael Johnson",
        email="michael.j@example.com",
        message="Can you please provide more information about the floral arrangement workshop on Saturday?",
    ),
    ContactSubmission(
        name="Emily Davis",
        email="emily.davis@example.com",
        message="I'm interested in being a vendor at next year's festival. Who should I contact about this opportunity?",
    ),
    ContactSubmission(
        name="Robert Wilson",
        email="rwilson@example.com",
        message="Are there any accommodations for visitors with disabilities at the festival grounds?",
    ),
    ContactSubmission(
        name="Sarah Thompson",
        email="sarah.t@example.com",
        message="I'm a photographer interested in covering the festival. Do you offer press passes?",
    ),
)


def seed_sample_submissions(conn: Connection) -> None:
    logger.info("Inserting %d sample contact form submissions", len(SAMPLE_SUBMISSIONS))
    insert_many(conn, [ContactSubmission(s.name, s.email, s.message) for s in SAMPLE_SUBMISSIONS])
