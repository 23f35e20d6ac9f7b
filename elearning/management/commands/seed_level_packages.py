"""
Seed Level Packages Management Command - Lingua

Creates the six CEFR level packages (A1 to C2). Existing packages are left
untouched unless ``--update`` is given, so the command can run on every
deploy.

Author: Lingua Development Team
Version: 1.0.0
"""

import logging

from django.core.management.base import BaseCommand
from django.db import transaction

from elearning.catalog.models import LevelPackage

logger = logging.getLogger(__name__)

DEFAULT_PACKAGES = [
    {
        "level": "A1",
        "name": "Level A1 - Beginner English",
        "description": "Start your English journey: basic vocabulary, core grammar and simple everyday conversations.",
        "price": 10000,
        "original_price": 299000,
        "duration": "3-4 months",
    },
    {
        "level": "A2",
        "name": "Level A2 - Elementary English",
        "description": "Broaden your vocabulary, consolidate grammar and communicate confidently in familiar situations.",
        "price": 10000,
        "original_price": 399000,
        "duration": "3-5 months",
    },
    {
        "level": "B1",
        "name": "Level B1 - Intermediate English",
        "description": "Communicate at work and while travelling, and handle more complex situations.",
        "price": 10000,
        "original_price": 499000,
        "duration": "4-6 months",
    },
    {
        "level": "B2",
        "name": "Level B2 - Upper-Intermediate English",
        "description": "Speak naturally, understand complex texts and get ready for an international workplace.",
        "price": 10000,
        "original_price": 599000,
        "duration": "5-7 months",
    },
    {
        "level": "C1",
        "name": "Level C1 - Advanced English",
        "description": "Use English flexibly for academic and professional purposes.",
        "price": 10000,
        "original_price": 699000,
        "duration": "6-8 months",
    },
    {
        "level": "C2",
        "name": "Level C2 - Proficiency English",
        "description": "Master English with near-native precision across every context.",
        "price": 10000,
        "original_price": 799000,
        "duration": "6-12 months",
    },
]


class Command(BaseCommand):
    help = "Creates the default A1-C2 level packages (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--update",
            action="store_true",
            help="Overwrite name, description and prices of existing packages.",
        )

    def handle(self, *args, **options):
        created_count = 0
        updated_count = 0

        with transaction.atomic():
            for data in DEFAULT_PACKAGES:
                fields = {key: value for key, value in data.items() if key != "level"}
                if options["update"]:
                    _, created = LevelPackage.objects.update_or_create(level=data["level"], defaults=fields)
                    updated_count += 0 if created else 1
                else:
                    _, created = LevelPackage.objects.get_or_create(level=data["level"], defaults=fields)
                created_count += 1 if created else 0

        logger.info("Level packages seeded: %s created, %s updated", created_count, updated_count)
        self.stdout.write(
            self.style.SUCCESS(f"{created_count} level package(s) created, {updated_count} updated.")
        )
