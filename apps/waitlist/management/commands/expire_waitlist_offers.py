from django.core.management.base import BaseCommand
from django.utils import timezone

from apps.waitlist.services import expire_offers


class Command(BaseCommand):
    help = "Expire lapsed waitlist seat offers and pass each seat to the next applicant."

    def add_arguments(self, parser):
        parser.add_argument("--class", dest="class_name", default=None, help="Only sweep this class")

    def handle(self, *args, **options):
        now = timezone.now()
        expired = expire_offers(now=now, class_name=options["class_name"])
        for entry in expired:
            self.stdout.write(f"Expired offer for application {entry.application_id} ({entry.class_name})")
        self.stdout.write(self.style.SUCCESS(f"Expired {len(expired)} waitlist offers."))
