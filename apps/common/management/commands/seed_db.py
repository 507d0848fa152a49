import random

from django.core.management.base import BaseCommand
from django.db import transaction

from apps.classes.models import ClassCapacity
from apps.common.factories import PATHS, ApplicationFactory, UserFactory, advance_application

SECTIONS = ("A", "B", "C")
SEAT_OPTIONS = (30, 35, 40, 45)


class Command(BaseCommand):
    help = (
        "Seed the database with class capacities, an admissions officer account and "
        "applications spread across the workflow."
    )

    def add_arguments(self, parser):
        parser.add_argument("--classes", type=int, default=12, help="Number of classes (Class 1..N)")
        parser.add_argument("--applications", type=int, default=60, help="Number of applications")
        parser.add_argument("--seed", type=int, default=None, help="Random seed for repeatable data")

    @transaction.atomic
    def handle(self, *args, **options):
        rng = random.Random(options["seed"])

        class_names = [f"Class {n}" for n in range(1, options["classes"] + 1)]
        created_sections = 0
        for class_name in class_names:
            for section in SECTIONS:
                _, created = ClassCapacity.objects.get_or_create(
                    class_name=class_name,
                    section=section,
                    defaults={"total_seats": rng.choice(SEAT_OPTIONS)},
                )
                created_sections += int(created)

        officer = UserFactory(username="admissions", is_superuser=True)
        statuses = list(PATHS)

        for _ in range(options["applications"]):
            application = ApplicationFactory(class_name=rng.choice(class_names), actor=officer.username)
            target = rng.choice(statuses)
            advance_application(application, *PATHS[target], actor=officer.username)

        self.stdout.write(
            self.style.SUCCESS(
                f"Seeded {created_sections} class sections and {options['applications']} applications "
                f"(login: {officer.username} / password123)."
            )
        )
